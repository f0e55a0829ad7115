import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import Decoded, Decoder, first_count, first_match
from usagetally.provider.files import iter_files, read_json, read_jsonl
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

JSONL_SUFFIXES = (".jsonl", ".log")
JSON_SUFFIXES = (".json",)
ENCRYPTED_SUFFIX = ".pb"


def _decoded(entry: "dict[str, Any]", usage: "UsageData") -> "Decoded | None":
    if not usage.has_tokens():
        return None
    usage.request_count = 1
    return Decoded(usage, parse_timestamp_value(entry.get("timestamp")))


def decode_nested_usage(entry: "Any") -> "Decoded | None":
    if not isinstance(entry, dict) or not isinstance(entry.get("usage"), dict):
        return None
    counts = entry["usage"]
    return _decoded(
        entry,
        UsageData(
            input_tokens=first_count(counts, "input_tokens", "context_length"),
            output_tokens=first_count(counts, "output_tokens", "completion_length"),
        ),
    )


def decode_flat_counts(entry: "Any") -> "Decoded | None":
    # billable_tokens is a combined total, it is kept as input rather
    # than split into input and output
    if not isinstance(entry, dict):
        return None
    return _decoded(
        entry,
        UsageData(
            input_tokens=first_count(entry, "context_length", "billable_tokens"),
            output_tokens=first_count(entry, "completion_length", "generated_tokens"),
        ),
    )


ENTRY_DECODERS: "tuple[Decoder, ...]" = (decode_nested_usage, decode_flat_counts)


def _entry_list(document: "Any") -> "list[Any] | None":
    return document if isinstance(document, list) else None


def _single_entry(document: "Any") -> "list[Any] | None":
    return [document] if isinstance(document, dict) else None


# a .json log holds either an array of entries or a single entry
DOCUMENT_DECODERS: "tuple[Callable[[Any], list[Any] | None], ...]" = (
    _entry_list,
    _single_entry,
)


class WindsurfProvider:
    """
    WindsurfProvider reads Windsurf's Cascade logs. Newer Windsurf
    builds only write encrypted .pb logs, which are reported as
    unsupported rather than guessed at.
    """

    def __init__(
        self,
        cascade_dir: "Path",
        config_dir: "Path",
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._cascade_dir = cascade_dir
        self._config_dir = config_dir
        self._clock = clock

    @property
    def name(self) -> "str":
        return "windsurf"

    @property
    def display_name(self) -> "str":
        return "Windsurf"

    async def is_available(self) -> "bool":
        return self._cascade_dir.is_dir() or self._config_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [str(self._cascade_dir), str(self._config_dir)]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._cascade_dir.is_dir():
            if self._config_dir.is_dir():
                return ProviderResult.active(
                    self.name,
                    self.display_name,
                    UsageStats(),
                    "Installed (no readable usage data found)",
                )
            return ProviderResult.not_found(self.name, self.display_name)

        windows = self._clock()
        stats, encrypted = await asyncio.to_thread(self._scan, windows)

        if stats.total.is_empty() and encrypted:
            return ProviderResult.unsupported(
                self.name,
                self.display_name,
                f"usage is only stored in {encrypted} encrypted .pb log(s)",
                str(self._cascade_dir),
            )

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._cascade_dir),
        )

    def _scan(self, windows: "TimeWindows") -> "tuple[UsageStats, int]":
        stats = UsageStats()
        encrypted = 0

        for path in iter_files(
            self._cascade_dir,
            JSONL_SUFFIXES + JSON_SUFFIXES + (ENCRYPTED_SUFFIX,),
        ):
            if path.name.endswith(ENCRYPTED_SUFFIX):
                encrypted += 1
                continue

            if path.name.endswith(JSON_SUFFIXES):
                entries = first_match(DOCUMENT_DECODERS, read_json(path)) or []
            else:
                entries = read_jsonl(path)
            self._fold_entries(entries, file_mtime(path), stats, windows)

        logger.debug("windsurf_scan_done", encrypted_logs=encrypted)
        return stats, encrypted

    def _fold_entries(
        self,
        entries: "Iterable[Any]",
        mtime: "datetime | None",
        stats: "UsageStats",
        windows: "TimeWindows",
    ) -> "None":
        for entry in entries:
            decoded = first_match(ENTRY_DECODERS, entry)
            if decoded is None:
                continue
            stats.record(
                decoded.usage,
                resolve_timestamp(decoded.timestamp, mtime),
                windows,
            )
