import asyncio
import contextlib
import os
import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import Callable, Iterator, TypeVar

import structlog

from usagetally.errors import SnapshotError

logger = structlog.get_logger()

T = TypeVar("T")

SNAPSHOT_PREFIX = "usagetally-snapshot-"
SIDECAR_SUFFIXES: "tuple[str, ...]" = ("-wal", "-shm")


def _sidecar(path: "Path", suffix: "str") -> "Path":
    return path.with_name(path.name + suffix)


@contextlib.contextmanager
def snapshot_copy(source: "str | os.PathLike[str]") -> "Iterator[Path]":
    """
    copies a database that another application may hold open to a
    uniquely named temporary file and yields the copy's path.

    WAL and SHM sidecars are copied on a best-effort basis under
    matching suffixes. The copy and every sidecar created here are
    removed when the block exits, however it exits.

    This is a point-in-time read, not a transactional one: a write
    in flight while copying may leave the copy missing recent rows.
    """
    source = Path(source)
    if not source.is_file():
        raise SnapshotError(f"database file does not exist: {source}")

    fd, name = tempfile.mkstemp(prefix=SNAPSHOT_PREFIX, suffix=".db")
    os.close(fd)
    copy = Path(name)
    created: "list[Path]" = [copy]

    try:
        try:
            shutil.copyfile(source, copy)
        except OSError as exc:
            raise SnapshotError(f"failed to copy {source}: {exc}") from exc

        for suffix in SIDECAR_SUFFIXES:
            sidecar = _sidecar(source, suffix)
            if not sidecar.exists():
                continue

            target = _sidecar(copy, suffix)
            created.append(target)
            try:
                shutil.copyfile(sidecar, target)
            except OSError as exc:
                logger.debug(
                    "snapshot_sidecar_copy_failed",
                    path=str(sidecar),
                    error=str(exc),
                )

        logger.debug("snapshot_created", source=str(source), copy=str(copy))
        yield copy
    finally:
        # sqlite may create sidecars of its own while the copy is open
        for suffix in SIDECAR_SUFFIXES:
            sidecar = _sidecar(copy, suffix)
            if sidecar not in created:
                created.append(sidecar)

        for path in created:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning(
                    "snapshot_cleanup_failed",
                    path=str(path),
                    error=str(exc),
                )


@contextlib.contextmanager
def snapshot_connection(
    source: "str | os.PathLike[str]",
) -> "Iterator[sqlite3.Connection]":
    """
    yields a sqlite3 connection on a snapshot copy of source. The
    connection is closed before the copy is removed.
    """
    with snapshot_copy(source) as copy:
        try:
            conn = sqlite3.connect(copy)
        except sqlite3.Error as exc:
            raise SnapshotError(f"failed to open snapshot of {source}: {exc}") from exc

        try:
            yield conn
        finally:
            conn.close()


def table_exists(conn: "sqlite3.Connection", table: "str") -> "bool":
    row = conn.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return bool(row and row[0])


async def query_snapshot(
    source: "str | os.PathLike[str]",
    query: "Callable[[sqlite3.Connection], T]",
) -> "T":
    """
    runs query against a snapshot of source in a worker thread so
    the copy and the queries do not block sibling providers.
    """

    def _run() -> "T":
        with snapshot_connection(source) as conn:
            return query(conn)

    return await asyncio.to_thread(_run)
