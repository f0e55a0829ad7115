import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import Decoded, coerce_count
from usagetally.provider.files import iter_files, read_json
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

# per assistant reply, used when a chat has no token counts
ESTIMATED_INPUT_PER_REPLY = 300
ESTIMATED_OUTPUT_PER_REPLY = 200


def _latest_message_time(messages: "list[Any]") -> "datetime | None":
    stamps = [
        ts
        for ts in (
            parse_timestamp_value(m.get("timestamp"))
            for m in messages
            if isinstance(m, dict)
        )
        if ts is not None
    ]
    return max(stamps, default=None)


def decode_chat_state(data: "Any") -> "Decoded | None":
    """
    decodes one Cody chat state file. Assistant replies count as
    requests. Chats without a tokenCount get a per-reply estimate.
    """
    if not isinstance(data, dict):
        return None

    usage = UsageData()
    counts = data.get("tokenCount")
    if isinstance(counts, dict):
        usage.input_tokens = coerce_count(counts.get("input"))
        usage.output_tokens = coerce_count(counts.get("output"))

    messages = data.get("messages")
    if not isinstance(messages, list):
        messages = []
    usage.request_count = sum(
        1 for m in messages if isinstance(m, dict) and m.get("role") == "assistant"
    )

    if not usage.has_tokens() and usage.request_count:
        usage.input_tokens = usage.request_count * ESTIMATED_INPUT_PER_REPLY
        usage.output_tokens = usage.request_count * ESTIMATED_OUTPUT_PER_REPLY
        usage.estimated = True

    if usage.is_empty():
        return None
    return Decoded(usage, _latest_message_time(messages))


class SourcegraphCodyProvider:
    """
    SourcegraphCodyProvider reads the chat state files the Cody VS
    Code extension keeps in its global storage directory.
    """

    def __init__(
        self,
        extension_dir: "Path",
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._extension_dir = extension_dir
        self._clock = clock

    @property
    def name(self) -> "str":
        return "sourcegraph-cody"

    @property
    def display_name(self) -> "str":
        return "Cody"

    async def is_available(self) -> "bool":
        return self._extension_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [str(self._extension_dir)]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._extension_dir.is_dir():
            return ProviderResult.not_found(self.name, self.display_name)

        stats = await asyncio.to_thread(self._scan, self._clock())

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._extension_dir),
        )

    def _scan(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        chats = 0
        for path in iter_files(self._extension_dir, (".json",)):
            decoded = decode_chat_state(read_json(path))
            if decoded is None:
                continue
            chats += 1
            stats.record(
                decoded.usage,
                resolve_timestamp(decoded.timestamp, file_mtime(path)),
                windows,
            )

        logger.debug("cody_scan_done", chats=chats)
        return stats
