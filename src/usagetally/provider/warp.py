import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import structlog

from usagetally.errors import SnapshotError
from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import coerce_count, first_match
from usagetally.provider.estimate import split_estimate
from usagetally.snapshot import query_snapshot, table_exists
from usagetally.timestamps import parse_rfc3339
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()


def decode_legacy_total(entry: "Any") -> "int | None":
    if not isinstance(entry, dict) or "total_tokens" not in entry:
        return None
    return coerce_count(entry["total_tokens"])


def decode_warp_byok(entry: "Any") -> "int | None":
    if not isinstance(entry, dict):
        return None
    tokens = coerce_count(entry.get("warp_tokens")) + coerce_count(
        entry.get("byok_tokens")
    )
    return tokens or None


# older Warp builds wrote total_tokens, current ones split it by billing
TOKEN_DECODERS: "tuple[Callable[[Any], int | None], ...]" = (
    decode_legacy_total,
    decode_warp_byok,
)


def conversation_tokens(data: "Any") -> "int":
    if not isinstance(data, dict):
        return 0
    metadata = data.get("conversation_usage_metadata")
    if not isinstance(metadata, dict):
        return 0
    entries = metadata.get("token_usage")
    if not isinstance(entries, list):
        return 0

    total = 0
    for entry in entries:
        tokens = first_match(TOKEN_DECODERS, entry)
        if tokens is not None:
            total += tokens
    return total


def _read_rows(
    conn: "sqlite3.Connection",
) -> "tuple[list[tuple[Any, Any]], list[Any]]":
    conversations: "list[tuple[Any, Any]]" = []
    queries: "list[Any]" = []
    if table_exists(conn, "agent_conversations"):
        conversations = conn.execute(
            "SELECT conversation_data, last_modified_at FROM agent_conversations"
        ).fetchall()
    if table_exists(conn, "ai_queries"):
        queries = [row[0] for row in conn.execute("SELECT start_ts FROM ai_queries")]
    return conversations, queries


def _parse_ts(value: "Any") -> "datetime | None":
    # Warp stores naive UTC text such as "2025-10-11 04:35:19.571758"
    return parse_rfc3339(value) if isinstance(value, str) else None


class WarpProvider:
    """
    WarpProvider reads agent conversation usage from the Warp
    terminal's SQLite database through a snapshot copy.
    """

    def __init__(
        self,
        db_path: "Path",
        logs_dir: "Path | None" = None,
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._db_path = db_path
        self._logs_dir = logs_dir
        self._clock = clock

    @property
    def name(self) -> "str":
        return "warp"

    @property
    def display_name(self) -> "str":
        return "Warp AI"

    async def is_available(self) -> "bool":
        return self._db_path.is_file()

    def paths_to_check(self) -> "list[str]":
        paths = [str(self._db_path)]
        if self._logs_dir is not None:
            paths.append(str(self._logs_dir))
        return paths

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._db_path.is_file():
            return ProviderResult.not_found(self.name, self.display_name)

        try:
            conversations, queries = await query_snapshot(self._db_path, _read_rows)
        except (SnapshotError, sqlite3.Error) as exc:
            logger.warning("warp_database_error", path=str(self._db_path), error=str(exc))
            return ProviderResult.error_result(self.name, self.display_name, str(exc))

        stats = self._fold(conversations, queries, self._clock())
        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._db_path),
        )

    def _fold(
        self,
        conversations: "list[tuple[Any, Any]]",
        queries: "list[Any]",
        windows: "TimeWindows",
    ) -> "UsageStats":
        stats = UsageStats()

        for data, modified_at in conversations:
            if isinstance(data, bytes):
                data = data.decode("utf-8", errors="replace")
            try:
                parsed = json.loads(data) if isinstance(data, str) else None
            except json.JSONDecodeError:
                continue

            tokens = conversation_tokens(parsed)
            if tokens > 0:
                stats.record(split_estimate(tokens), _parse_ts(modified_at), windows)

        # ai_queries only fills in request counts when conversations had none
        if stats.total.request_count == 0:
            for start_ts in queries:
                stats.record(UsageData(request_count=1), _parse_ts(start_ts), windows)

        return stats
