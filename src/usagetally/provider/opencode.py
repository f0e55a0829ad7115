import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.pricing import PricingTable
from usagetally.provider.decoding import coerce_count
from usagetally.provider.files import iter_files, read_json
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()


def session_usage(session: "dict[str, Any]") -> "UsageData | None":
    counts = session.get("usage")
    if not isinstance(counts, dict):
        return None
    usage = UsageData(
        input_tokens=coerce_count(counts.get("input_tokens")),
        output_tokens=coerce_count(counts.get("output_tokens")),
        request_count=1,
    )
    return usage if usage.has_tokens() else None


def message_usage(message: "dict[str, Any]") -> "UsageData | None":
    counts = message.get("usage")
    if not isinstance(counts, dict):
        return None
    usage = UsageData(
        input_tokens=coerce_count(counts.get("input_tokens")),
        # reasoning models bill their hidden reasoning as output
        output_tokens=coerce_count(counts.get("output_tokens"))
        + coerce_count(counts.get("reasoning_tokens")),
        request_count=1 if message.get("role") == "assistant" else 0,
    )
    return usage if usage.has_tokens() else None


def _first_timestamp(*values: "Any") -> "datetime | None":
    return resolve_timestamp(*(parse_timestamp_value(v) for v in values))


def _model_of(record: "dict[str, Any]", default: "str | None" = None) -> "str | None":
    model = record.get("model")
    return model if isinstance(model, str) and model else default


class OpenCodeProvider:
    """
    OpenCodeProvider reads OpenCode's per-session JSON files. A
    session may carry a usage summary, per-message usage, or both.
    """

    def __init__(
        self,
        storage_dir: "Path",
        pricing: "PricingTable | None" = None,
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._storage_dir = storage_dir
        self._pricing = pricing or PricingTable.default()
        self._clock = clock

    @property
    def name(self) -> "str":
        return "opencode"

    @property
    def display_name(self) -> "str":
        return "OpenCode"

    async def is_available(self) -> "bool":
        return self._storage_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [str(self._storage_dir)]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._storage_dir.is_dir():
            return ProviderResult.not_found(self.name, self.display_name)

        windows = self._clock()
        stats = await asyncio.to_thread(self._scan, windows)

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._storage_dir),
        )

    def _scan(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        sessions = 0
        for path in iter_files(self._storage_dir, (".json",)):
            session = read_json(path)
            if not isinstance(session, dict):
                continue
            sessions += 1
            self._fold_session(session, file_mtime(path), stats, windows)

        logger.debug("opencode_scan_done", sessions=sessions)
        return stats

    def _fold_session(
        self,
        session: "dict[str, Any]",
        mtime: "datetime | None",
        stats: "UsageStats",
        windows: "TimeWindows",
    ) -> "None":
        session_time = resolve_timestamp(
            _first_timestamp(session.get("created_at"), session.get("updated_at")),
            mtime,
        )

        session_model = _model_of(session)
        summary = session_usage(session)
        if summary is not None:
            self._pricing.fill_cost(summary, session_model)
            stats.record(summary, session_time, windows)

        messages = session.get("messages")
        if not isinstance(messages, list):
            return

        for message in messages:
            if not isinstance(message, dict):
                continue
            usage = message_usage(message)
            if usage is None:
                continue
            self._pricing.fill_cost(usage, _model_of(message, session_model))
            stats.record(
                usage,
                resolve_timestamp(
                    _first_timestamp(message.get("timestamp"), message.get("created_at")),
                    session_time,
                ),
                windows,
            )
