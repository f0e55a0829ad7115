import json
import os
import sqlite3
from pathlib import Path
from typing import Any

import structlog

from usagetally.errors import SnapshotError
from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import Decoded, Decoder, coerce_count, first_match
from usagetally.snapshot import query_snapshot, table_exists
from usagetally.timestamps import parse_timestamp_value
from usagetally.timewindow import Clock, local_time_ranges

logger = structlog.get_logger()

# only the most recently used workspaces are scanned
MAX_WORKSPACES = 10

ITEM_TABLE_QUERY = (
    "SELECT value FROM ItemTable "
    "WHERE key LIKE '%aichat%' OR key LIKE '%composer%' OR key LIKE '%chat%'"
)
DISK_KV_QUERY = (
    "SELECT value FROM cursorDiskKV "
    "WHERE key LIKE 'composerData:%' OR key LIKE 'composer.%' OR key LIKE 'bubbleId:%'"
)


def decode_token_count(raw: "Any") -> "Decoded | None":
    """
    composer and bubble entries: tokenCount.{inputTokens,outputTokens}
    stamped with createdAt, or updatedAt when createdAt is missing.
    """
    if not isinstance(raw, dict):
        return None
    counts = raw.get("tokenCount")
    if not isinstance(counts, dict):
        return None

    usage = UsageData(
        input_tokens=coerce_count(counts.get("inputTokens")),
        output_tokens=coerce_count(counts.get("outputTokens")),
        request_count=1,
    )
    if not usage.has_tokens():
        return None

    timestamp = parse_timestamp_value(raw.get("createdAt"))
    if timestamp is None:
        timestamp = parse_timestamp_value(raw.get("updatedAt"))
    return Decoded(usage, timestamp)


def decode_chat_transcript(raw: "Any") -> "Decoded | None":
    """
    legacy chat entries carry no token counts, only messages. Each
    assistant message counts as one request.
    """
    if not isinstance(raw, dict):
        return None
    messages = raw.get("messages")
    if not isinstance(messages, list):
        return None

    replies = sum(
        1 for m in messages if isinstance(m, dict) and m.get("role") == "assistant"
    )
    if replies == 0:
        return None
    return Decoded(UsageData(request_count=replies))


VALUE_DECODERS: "tuple[Decoder, ...]" = (decode_token_count, decode_chat_transcript)


def _read_values(conn: "sqlite3.Connection") -> "list[Any]":
    values: "list[Any]" = []
    for table, query in (("ItemTable", ITEM_TABLE_QUERY), ("cursorDiskKV", DISK_KV_QUERY)):
        if not table_exists(conn, table):
            continue
        for (value,) in conn.execute(query):
            if isinstance(value, bytes):
                value = value.decode("utf-8", errors="replace")
            if not isinstance(value, str):
                continue
            try:
                values.append(json.loads(value))
            except json.JSONDecodeError:
                continue
    return values


class CursorProvider:
    """
    CursorProvider reads Cursor's VS Code style state databases:
    the global one plus the most recently used workspaces.

    Cursor keeps these databases open while running, so they are
    only ever read through a snapshot copy.
    """

    def __init__(
        self,
        global_db: "Path",
        workspace_storage: "Path",
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._global_db = global_db
        self._workspace_storage = workspace_storage
        self._clock = clock

    @property
    def name(self) -> "str":
        return "cursor"

    @property
    def display_name(self) -> "str":
        return "Cursor"

    async def is_available(self) -> "bool":
        return self._global_db.is_file() or self._workspace_storage.is_dir()

    def paths_to_check(self) -> "list[str]":
        return [str(self._global_db), str(self._workspace_storage)]

    def _databases(self) -> "list[Path]":
        databases: "list[Path]" = []
        if self._global_db.is_file():
            databases.append(self._global_db)

        if not self._workspace_storage.is_dir():
            return databases

        workspaces: "list[tuple[float, Path]]" = []
        try:
            entries = list(os.scandir(self._workspace_storage))
        except OSError as exc:
            logger.debug(
                "cursor_workspaces_unreadable",
                path=str(self._workspace_storage),
                error=str(exc),
            )
            return databases

        for entry in entries:
            db = Path(entry.path) / "state.vscdb"
            try:
                workspaces.append((db.stat().st_mtime, db))
            except OSError:
                continue

        workspaces.sort(key=lambda item: item[0], reverse=True)
        databases.extend(db for _, db in workspaces[:MAX_WORKSPACES])
        return databases

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._global_db.is_file() and not self._workspace_storage.is_dir():
            return ProviderResult.not_found(self.name, self.display_name)

        windows = self._clock()
        stats = UsageStats()
        databases = self._databases()
        failures: "list[str]" = []

        for db in databases:
            try:
                values = await query_snapshot(db, _read_values)
            except (SnapshotError, sqlite3.Error) as exc:
                # one unreadable workspace must not hide the others
                logger.warning("cursor_database_skipped", path=str(db), error=str(exc))
                failures.append(str(exc))
                continue

            for value in values:
                decoded = first_match(VALUE_DECODERS, value)
                if decoded is not None:
                    stats.record(decoded.usage, decoded.timestamp, windows)

        if databases and len(failures) == len(databases):
            return ProviderResult.error_result(
                self.name,
                self.display_name,
                f"failed to read {len(failures)} database(s): {failures[-1]}",
            )

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._global_db),
        )
