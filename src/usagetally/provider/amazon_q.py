import asyncio
import json
import re
from pathlib import Path
from typing import Any

import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import Decoded, coerce_count
from usagetally.provider.estimate import split_estimate
from usagetally.provider.files import read_lines
from usagetally.timestamps import (
    file_mtime,
    parse_rfc3339,
    parse_timestamp_value,
    resolve_timestamp,
)
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

_INPUT_RE = re.compile(r"input_tokens?[:\s=]+(\d+)", re.IGNORECASE)
_OUTPUT_RE = re.compile(r"output_tokens?[:\s=]+(\d+)", re.IGNORECASE)
# a bare count, not the tail of input_tokens/output_tokens
_TOKENS_RE = re.compile(r"(?<![\w])tokens?[:\s=]+(\d+)", re.IGNORECASE)
_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}")


def decode_json_entry(entry: "dict[str, Any]") -> "Decoded | None":
    """
    decodes a structured log entry. Explicit input/output counts win,
    a combined tokens field is split as an estimate.
    """
    usage = UsageData(
        input_tokens=coerce_count(entry.get("input_tokens")),
        output_tokens=coerce_count(entry.get("output_tokens")),
        request_count=1,
    )
    if not usage.has_tokens():
        combined = coerce_count(entry.get("tokens"))
        if combined == 0:
            return None
        usage = split_estimate(combined)
    return Decoded(usage, parse_timestamp_value(entry.get("timestamp")))


def _match_count(pattern: "re.Pattern[str]", line: "str") -> "int":
    match = pattern.search(line)
    return int(match.group(1)) if match else 0


def decode_text_line(line: "str") -> "Decoded | None":
    """
    picks token counts out of a plain text log line such as
    "2026-10-20 09:00:00 INFO input_tokens=120 output_tokens=30".
    """
    usage = UsageData(
        input_tokens=_match_count(_INPUT_RE, line),
        output_tokens=_match_count(_OUTPUT_RE, line),
        request_count=1,
    )
    if not usage.has_tokens():
        combined = _match_count(_TOKENS_RE, line)
        if combined == 0:
            return None
        usage = split_estimate(combined)

    match = _TIMESTAMP_RE.search(line)
    timestamp = parse_rfc3339(match.group(0).replace(" ", "T")) if match else None
    return Decoded(usage, timestamp)


def decode_line(line: "str") -> "Decoded | None":
    # a JSON object line is owned by the structured decoder, only
    # other lines are scanned as text
    try:
        entry = json.loads(line)
    except ValueError:
        entry = None
    if isinstance(entry, dict):
        return decode_json_entry(entry)
    return decode_text_line(line)


class AmazonQProvider:
    """
    AmazonQProvider reads the Amazon Q Developer local log. Amazon Q
    keeps no per-request usage on disk in a fixed format, so both
    structured and free text lines are accepted.
    """

    def __init__(
        self,
        log_file: "Path",
        aws_config_file: "Path",
        clock: "Clock" = local_time_ranges,
    ) -> "None":
        self._log_file = log_file
        self._aws_config_file = aws_config_file
        self._clock = clock

    @property
    def name(self) -> "str":
        return "amazon-q"

    @property
    def display_name(self) -> "str":
        return "Amazon Q"

    async def is_available(self) -> "bool":
        return self._log_file.is_file() or self._aws_config_file.is_file()

    def paths_to_check(self) -> "list[str]":
        return [str(self._log_file), str(self._aws_config_file)]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._log_file.is_file():
            if self._aws_config_file.is_file():
                return ProviderResult.active(
                    self.name,
                    self.display_name,
                    UsageStats(),
                    "Configured (no local usage data)",
                )
            return ProviderResult.not_found(self.name, self.display_name)

        stats = await asyncio.to_thread(self._scan, self._clock())

        return ProviderResult.active(
            self.name,
            self.display_name,
            stats,
            str(self._log_file),
        )

    def _scan(self, windows: "TimeWindows") -> "UsageStats":
        stats = UsageStats()
        mtime = file_mtime(self._log_file)
        for line in read_lines(self._log_file):
            decoded = decode_line(line)
            if decoded is None:
                continue
            stats.record(
                decoded.usage,
                resolve_timestamp(decoded.timestamp, mtime),
                windows,
            )

        logger.debug("amazon_q_scan_done", requests=stats.total.request_count)
        return stats
