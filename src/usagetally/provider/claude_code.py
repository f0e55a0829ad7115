import asyncio
from pathlib import Path
from typing import Any

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.pricing import PricingTable
from usagetally.provider.decoding import Decoded, coerce_count
from usagetally.provider.files import iter_files, read_jsonl
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

# lines without a message.model are priced as the common model
FALLBACK_MODEL = "claude-sonnet-4"


def decode_message(raw: "Any") -> "Decoded | None":
    """
    decodes one session log line. Only lines carrying
    message.usage with at least one token count are usage records.
    """
    if not isinstance(raw, dict):
        return None
    message = raw.get("message")
    if not isinstance(message, dict):
        return None
    counts = message.get("usage")
    if not isinstance(counts, dict):
        return None

    usage = UsageData(
        input_tokens=coerce_count(counts.get("input_tokens")),
        output_tokens=coerce_count(counts.get("output_tokens")),
        cache_read_tokens=coerce_count(counts.get("cache_read_input_tokens")),
        cache_write_tokens=coerce_count(counts.get("cache_creation_input_tokens")),
    )
    if not usage.has_tokens():
        return None

    usage.request_count = 1
    cost = raw.get("costUSD")
    if isinstance(cost, (int, float)) and not isinstance(cost, bool) and cost > 0:
        usage.estimated_cost = float(cost)

    model = message.get("model")
    return Decoded(
        usage,
        parse_timestamp_value(raw.get("timestamp")),
        model if isinstance(model, str) and model else None,
    )


class ClaudeCodeProvider:
    """
    ClaudeCodeProvider reads the JSONL session logs that the Claude
    Code CLI and its IDE extensions share under ~/.claude/projects,
    including nested subagent directories.
    """

    def __init__(
        self,
        projects_dir: "Path",
        config_file: "Path | None" = None,
        pricing: "PricingTable | None" = None,
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._projects_dir = projects_dir
        self._config_file = config_file
        self._pricing = pricing or PricingTable.default()
        self._clock = clock

    @property
    def name(self) -> "str":
        return "claude-code"

    @property
    def display_name(self) -> "str":
        return "Claude Code"

    async def is_available(self) -> "bool":
        return self._projects_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        paths = [str(self._projects_dir)]
        if self._config_file is not None:
            paths.append(str(self._config_file))
        return paths

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._projects_dir.is_dir():
            return ProviderResult.not_found(self.name, self.display_name)

        windows = self._clock()
        stats = await asyncio.to_thread(self._scan, windows)

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._projects_dir),
        )

    def _scan(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        files = 0

        for path in iter_files(self._projects_dir, (".jsonl",)):
            files += 1
            mtime = file_mtime(path)
            for raw in read_jsonl(path):
                decoded = decode_message(raw)
                if decoded is None:
                    continue
                self._pricing.fill_cost(decoded.usage, decoded.model or FALLBACK_MODEL)
                stats.record(
                    decoded.usage,
                    resolve_timestamp(decoded.timestamp, mtime),
                    windows,
                )

        logger.debug(
            "claude_code_scan_done",
            files=files,
            requests=stats.total.request_count,
        )
        return stats
