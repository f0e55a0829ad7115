import json
import os
from pathlib import Path
from typing import Any, Iterator

import structlog

logger = structlog.get_logger()


def iter_files(root: "Path", suffixes: "tuple[str, ...]") -> "Iterator[Path]":
    """
    walks root with an explicit stack instead of recursion and
    yields files whose name ends with one of suffixes, in sorted
    order. Directories that cannot be listed are skipped.
    """
    stack: "list[Path]" = [root]

    while stack:
        directory = stack.pop()
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as exc:
            logger.debug("directory_unreadable", path=str(directory), error=str(exc))
            continue

        subdirs: "list[Path]" = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(Path(entry.path))
                elif entry.is_file() and entry.name.endswith(suffixes):
                    yield Path(entry.path)
            except OSError:
                continue

        # reversed so the stack pops subdirectories in sorted order
        stack.extend(reversed(subdirs))


def read_jsonl(path: "Path") -> "Iterator[Any]":
    """
    yields the decoded JSON value of every line in path. Blank and
    malformed lines are skipped so one bad line does not discard the
    rest of the file.
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("jsonl_line_skipped", path=str(path), line=lineno)
    except OSError as exc:
        logger.debug("file_unreadable", path=str(path), error=str(exc))


def read_json(path: "Path") -> "Any | None":
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.debug("json_file_skipped", path=str(path), error=str(exc))
        return None


def read_lines(path: "Path") -> "Iterator[str]":
    """
    yields the non-blank lines of a text log, stripped.
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    yield line
    except OSError as exc:
        logger.debug("file_unreadable", path=str(path), error=str(exc))
