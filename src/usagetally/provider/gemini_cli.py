import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.pricing import PricingTable
from usagetally.provider.decoding import Decoded, Decoder, coerce_count, first_match
from usagetally.provider.files import iter_files, read_json, read_jsonl
from usagetally.timestamps import file_mtime, parse_timestamp_value, resolve_timestamp
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

PRICING_MODEL = "gemini-2.0-flash"

TELEMETRY_LOG = "telemetry.log"
# written by the bundled gemini wrapper script, one JSON object per run
WRAPPER_TELEMETRY = "a2zusage-telemetry.jsonl"
SESSIONS_DIR = "tmp"
CONVERSATIONS_DIR = Path("antigravity") / "conversations"
ENCRYPTED_SUFFIX = ".pb"


def _decoded(
    usage: "UsageData",
    timestamp: "Any",
    model: "Any" = None,
) -> "Decoded | None":
    if usage.input_tokens == 0 and usage.output_tokens == 0:
        return None
    usage.request_count = 1
    return Decoded(
        usage,
        parse_timestamp_value(timestamp),
        model if isinstance(model, str) and model else None,
    )


def decode_wrapper_entry(entry: "Any") -> "Decoded | None":
    if not isinstance(entry, dict):
        return None
    return _decoded(
        UsageData(
            input_tokens=coerce_count(entry.get("input_tokens")),
            output_tokens=coerce_count(entry.get("output_tokens")),
            cache_read_tokens=coerce_count(entry.get("cached_tokens")),
        ),
        entry.get("timestamp"),
        entry.get("model"),
    )


def decode_session_message(message: "Any") -> "Decoded | None":
    """
    decodes one message of a native session file. Only the model's
    own replies ("gemini" messages) carry token counts.
    """
    if not isinstance(message, dict) or message.get("type") != "gemini":
        return None
    tokens = message.get("tokens")
    if not isinstance(tokens, dict):
        return None
    return _decoded(
        UsageData(
            input_tokens=coerce_count(tokens.get("input")),
            output_tokens=coerce_count(tokens.get("output")),
            cache_read_tokens=coerce_count(tokens.get("cached")),
        ),
        message.get("timestamp"),
        message.get("model"),
    )


def decode_split_counts(entry: "Any") -> "Decoded | None":
    if not isinstance(entry, dict):
        return None
    return _decoded(
        UsageData(
            input_tokens=coerce_count(entry.get("input_token_count")),
            output_tokens=coerce_count(entry.get("output_token_count")),
        ),
        entry.get("timestamp"),
    )


def decode_total_count(entry: "Any") -> "Decoded | None":
    # the split is unknown, the total is kept as input instead of
    # inventing one
    if not isinstance(entry, dict):
        return None
    return _decoded(
        UsageData(input_tokens=coerce_count(entry.get("total_token_count"))),
        entry.get("timestamp"),
    )


LEGACY_DECODERS: "tuple[Decoder, ...]" = (decode_split_counts, decode_total_count)


def _legacy_entries(document: "Any") -> "list[Any]":
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        return [document]
    return []


class GeminiCLIProvider:
    """
    GeminiCLIProvider reads Gemini CLI usage from ~/.gemini.

    Sources are tried in priority order. Wrapper telemetry and native
    session files carry real per-request counts. Only when neither
    yields tokens are the legacy telemetry logs read, and when those
    are empty too while encrypted .pb conversations exist the tool is
    reported as unsupported.
    """

    def __init__(
        self,
        gemini_dir: "Path",
        pricing: "PricingTable | None" = None,
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._gemini_dir = gemini_dir
        self._pricing = pricing or PricingTable.default()
        self._clock = clock

    @property
    def name(self) -> "str":
        return "gemini-cli"

    @property
    def display_name(self) -> "str":
        return "Gemini CLI"

    @property
    def _wrapper_file(self) -> "Path":
        return self._gemini_dir / WRAPPER_TELEMETRY

    @property
    def _telemetry_file(self) -> "Path":
        return self._gemini_dir / TELEMETRY_LOG

    @property
    def _conversations_dir(self) -> "Path":
        return self._gemini_dir / CONVERSATIONS_DIR

    async def is_available(self) -> "bool":
        return self._gemini_dir.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [
            str(self._conversations_dir),
            str(self._telemetry_file),
            str(self._gemini_dir),
        ]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._gemini_dir.is_dir():
            return ProviderResult.not_found(self.name, self.display_name)

        windows = self._clock()
        stats = await asyncio.to_thread(self._scan_primary, windows)
        if stats.total.has_tokens():
            if self._wrapper_file.is_file():
                source = "wrapper telemetry + native sessions"
            else:
                source = str(self._gemini_dir / SESSIONS_DIR)
            return ProviderResult.active(self.name, self.display_name, stats, source)

        stats = await asyncio.to_thread(self._scan_legacy, windows)
        if self._telemetry_file.is_file():
            source = str(self._telemetry_file)
        else:
            source = str(self._gemini_dir)

        if stats.total.is_empty():
            encrypted = await asyncio.to_thread(self._count_encrypted)
            if encrypted:
                return ProviderResult.unsupported(
                    self.name,
                    self.display_name,
                    "token data is encrypted in .pb files, use /stats in Gemini CLI",
                    source,
                )

        return ProviderResult.active(self.name, self.display_name, stats, source)

    def _fold(
        self,
        decoded: "Decoded | None",
        mtime: "datetime | None",
        stats: "UsageStats",
        windows: "TimeWindows",
    ) -> "None":
        if decoded is None:
            return
        # a total-only record has no split to price
        if decoded.usage.output_tokens > 0:
            self._pricing.fill_cost(decoded.usage, decoded.model or PRICING_MODEL)
        stats.record(decoded.usage, resolve_timestamp(decoded.timestamp, mtime), windows)

    def _scan_primary(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()

        if self._wrapper_file.is_file():
            mtime = file_mtime(self._wrapper_file)
            for entry in read_jsonl(self._wrapper_file):
                self._fold(decode_wrapper_entry(entry), mtime, stats, windows)

        sessions = 0
        for path in iter_files(self._gemini_dir / SESSIONS_DIR, (".json",)):
            # ~/.gemini/tmp/<project hash>/chats/session-*.json
            if path.parent.name != "chats":
                continue
            session = read_json(path)
            if not isinstance(session, dict) or not isinstance(session.get("messages"), list):
                continue
            sessions += 1
            mtime = file_mtime(path)
            for message in session["messages"]:
                self._fold(decode_session_message(message), mtime, stats, windows)

        logger.debug("gemini_primary_scan_done", sessions=sessions)
        return stats

    def _legacy_files(self) -> "Iterable[Path]":
        if self._telemetry_file.is_file():
            yield self._telemetry_file
        try:
            entries = sorted(self._gemini_dir.iterdir())
        except OSError:
            return
        for path in entries:
            if path.name in (TELEMETRY_LOG, WRAPPER_TELEMETRY) or not path.is_file():
                continue
            if path.name.endswith((".log", ".jsonl", ".json")):
                yield path

    def _scan_legacy(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        for path in self._legacy_files():
            if path.name.endswith(".json"):
                entries: "Iterable[Any]" = _legacy_entries(read_json(path))
            else:
                entries = read_jsonl(path)
            mtime = file_mtime(path)
            for entry in entries:
                self._fold(first_match(LEGACY_DECODERS, entry), mtime, stats, windows)
        return stats

    def _count_encrypted(self) -> "int":
        return sum(
            1 for _ in iter_files(self._conversations_dir, (ENCRYPTED_SUFFIX,))
        )
