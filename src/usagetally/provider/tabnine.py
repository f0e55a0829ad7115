import asyncio
from pathlib import Path
from typing import Any

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import Decoded, coerce_count
from usagetally.provider.estimate import estimate_tokens_from_chars
from usagetally.provider.files import iter_files, read_jsonl
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

LOG_SUFFIXES = (".log", ".json", ".jsonl")
COMPLETION_EVENTS = ("usage", "completion")
# completions are short, the context sent with them is assumed twice as long
CONTEXT_FACTOR = 2


def _output_tokens(section: "Any", tokens_key: "str", chars_key: "str") -> "int":
    if not isinstance(section, dict):
        return 0
    if section.get(tokens_key) is not None:
        return coerce_count(section.get(tokens_key))
    return estimate_tokens_from_chars(coerce_count(section.get(chars_key)))


def decode_entry(entry: "Any") -> "Decoded | None":
    """
    decodes one Tabnine log event. Tabnine logs completion sizes,
    not billed tokens, so every record it yields is an estimate.
    """
    if not isinstance(entry, dict):
        return None

    is_completion = (
        entry.get("type") == "completion" or entry.get("event") in COMPLETION_EVENTS
    )
    meta, usage_section = entry.get("meta"), entry.get("usage")
    if not is_completion and meta is None and usage_section is None:
        return None

    output_tokens = max(
        _output_tokens(meta, "tokens_used", "net_length"),
        _output_tokens(usage_section, "tokens", "chars"),
    )
    if output_tokens == 0:
        return None

    usage = UsageData(
        input_tokens=output_tokens * CONTEXT_FACTOR,
        output_tokens=output_tokens,
        request_count=1,
        estimated=True,
    )
    return Decoded(usage, parse_timestamp_value(entry.get("timestamp")))


class TabnineProvider:
    """
    TabnineProvider reads completion events from Tabnine's local
    logs directory.
    """

    def __init__(
        self,
        logs_dir: "Path",
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._logs_dir = logs_dir
        self._clock = clock

    @property
    def name(self) -> "str":
        return "tabnine"

    @property
    def display_name(self) -> "str":
        return "Tabnine"

    async def is_available(self) -> "bool":
        return self._logs_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [str(self._logs_dir)]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._logs_dir.is_dir():
            return ProviderResult.not_found(self.name, self.display_name)

        stats = await asyncio.to_thread(self._scan, self._clock())

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._logs_dir),
        )

    def _scan(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        for path in iter_files(self._logs_dir, LOG_SUFFIXES):
            mtime = file_mtime(path)
            for entry in read_jsonl(path):
                decoded = decode_entry(entry)
                if decoded is None:
                    continue
                stats.record(
                    decoded.usage,
                    resolve_timestamp(decoded.timestamp, mtime),
                    windows,
                )

        logger.debug("tabnine_scan_done", requests=stats.total.request_count)
        return stats
