import asyncio
from pathlib import Path
from typing import Any

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.pricing import PricingTable
from usagetally.provider.decoding import Decoded, coerce_count
from usagetally.provider.files import read_json
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

TASK_FILE = "task.json"
# Cline tasks do not record the model, price them as its default one
PRICING_MODEL = "claude-sonnet-4"


def _reported_cost(value: "Any") -> "float":
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return 0.0
    return float(value)


def decode_task(data: "Any") -> "Decoded | None":
    """
    decodes a task.json summary. A task without input or output
    tokens is not a usage record.
    """
    if not isinstance(data, dict):
        return None

    usage = UsageData(
        input_tokens=coerce_count(data.get("tokensIn")),
        output_tokens=coerce_count(data.get("tokensOut")),
        cache_read_tokens=coerce_count(data.get("cacheReads")),
        cache_write_tokens=coerce_count(data.get("cacheWrites")),
        request_count=1,
        estimated_cost=_reported_cost(data.get("totalCost")),
    )
    if usage.input_tokens == 0 and usage.output_tokens == 0:
        return None
    return Decoded(usage, parse_timestamp_value(data.get("ts")))


def decode_roo_tracking(data: "Any") -> "UsageData | None":
    """
    decodes Roo Code's usage-tracking.json, which only keeps
    lifetime totals.
    """
    if not isinstance(data, dict):
        return None
    return UsageData(
        input_tokens=coerce_count(data.get("totalInputTokens")),
        output_tokens=coerce_count(data.get("totalOutputTokens")),
        cache_read_tokens=coerce_count(data.get("totalCacheReadTokens")),
        cache_write_tokens=coerce_count(data.get("totalCacheWriteTokens")),
        estimated_cost=_reported_cost(data.get("totalCost")),
    )


class ClineProvider:
    """
    ClineProvider reads the Cline VS Code extension's per-task
    summaries, or those of its Roo Code fork. Roo's own usage
    tracking file wins when it exists, it is kept by the extension
    itself and only has lifetime totals.
    """

    def __init__(
        self,
        tasks_dir: "Path",
        roo_tasks_dir: "Path",
        roo_tracking_file: "Path",
        pricing: "PricingTable | None" = None,
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._tasks_dir = tasks_dir
        self._roo_tasks_dir = roo_tasks_dir
        self._roo_tracking_file = roo_tracking_file
        self._pricing = pricing or PricingTable.default()
        self._clock = clock

    @property
    def name(self) -> "str":
        return "cline"

    @property
    def display_name(self) -> "str":
        return "Cline"

    async def is_available(self) -> "bool":
        return (
            self._tasks_dir.is_dir()
            or self._roo_tasks_dir.is_dir()
            or self._roo_tracking_file.is_file()
        )

    def paths_to_check(self) -> "list[str]":
        return [
            str(self._tasks_dir),
            str(self._roo_tasks_dir),
            str(self._roo_tracking_file),
        ]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if self._roo_tracking_file.is_file():
            totals = decode_roo_tracking(
                await asyncio.to_thread(read_json, self._roo_tracking_file)
            )
            if totals is not None:
                self._pricing.fill_cost(totals, PRICING_MODEL)
                return ProviderResult.active(
                    self.name,
                    self.display_name,
                    UsageStats(total=totals),
                    str(self._roo_tracking_file),
                )
            logger.warning(
                "roo_tracking_unreadable",
                path=str(self._roo_tracking_file),
            )

        if self._roo_tasks_dir.is_dir():
            tasks_dir = self._roo_tasks_dir
        elif self._tasks_dir.is_dir():
            tasks_dir = self._tasks_dir
        else:
            return ProviderResult.not_found(self.name, self.display_name)

        windows = self._clock()
        stats = await asyncio.to_thread(self._scan, tasks_dir, windows)

        return ProviderResult.active(self.name, self.display_name, stats, str(tasks_dir))

    def _scan(self, tasks_dir: "Path", windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        tasks = 0

        try:
            task_dirs = sorted(p for p in tasks_dir.iterdir() if p.is_dir())
        except OSError as exc:
            logger.warning("cline_tasks_unreadable", path=str(tasks_dir), error=str(exc))
            return stats

        for task_dir in task_dirs:
            task_file = task_dir / TASK_FILE
            if not task_file.is_file():
                continue
            decoded = decode_task(read_json(task_file))
            if decoded is None:
                continue
            tasks += 1
            self._pricing.fill_cost(decoded.usage, PRICING_MODEL)
            stats.record(
                decoded.usage,
                resolve_timestamp(decoded.timestamp, file_mtime(task_file)),
                windows,
            )

        logger.debug("cline_scan_done", tasks=tasks)
        return stats
