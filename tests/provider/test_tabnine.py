import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from usagetally.models import ProviderStatus
from usagetally.provider.tabnine import TabnineProvider, decode_entry
from usagetally.timewindow import Clock


class TestDecodeEntry:
    def test_tokens_used(self) -> "None":
        decoded = decode_entry({"type": "completion", "meta": {"tokens_used": 25}})
        assert decoded is not None
        assert decoded.usage.output_tokens == 25
        assert decoded.usage.input_tokens == 50
        assert decoded.usage.request_count == 1
        assert decoded.usage.estimated is True

    def test_chars_are_converted_to_tokens(self) -> "None":
        decoded = decode_entry({"event": "usage", "usage": {"chars": 401}})
        assert decoded is not None
        assert decoded.usage.output_tokens == 100

    def test_larger_estimate_wins(self) -> "None":
        decoded = decode_entry(
            {"meta": {"net_length": 40}, "usage": {"tokens": 30}}
        )
        assert decoded is not None
        assert decoded.usage.output_tokens == 30

    @pytest.mark.parametrize(
        "entry",
        [
            "completion",
            {"type": "startup"},
            {"type": "completion"},
            {"meta": {"tokens_used": 0}},
        ],
    )
    def test_ignored(self, entry: "Any") -> "None":
        assert decode_entry(entry) is None


class TestTabnineProvider:
    @pytest.mark.asyncio
    async def test_not_found(self, tmp_path: "Path", clock: "Clock") -> "None":
        result = await TabnineProvider(tmp_path / "logs", clock=clock).get_usage()
        assert result.status is ProviderStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_reads_logs(
        self,
        tmp_path: "Path",
        clock: "Clock",
        now: "datetime",
    ) -> "None":
        logs = tmp_path / "logs"
        (logs / "nested").mkdir(parents=True)
        first = logs / "tabnine.log"
        first.write_text(
            "\n".join(
                [
                    json.dumps(
                        {
                            "type": "completion",
                            "meta": {"tokens_used": 10},
                            "timestamp": now.isoformat(),
                        }
                    ),
                    "plain text",
                    json.dumps({"type": "startup"}),
                ]
            )
        )
        second = logs / "nested" / "events.jsonl"
        second.write_text(json.dumps({"event": "completion", "usage": {"tokens": 5}}))
        (logs / "notes.txt").write_text(
            json.dumps({"type": "completion", "meta": {"tokens_used": 99}})
        )
        for path in (first, second):
            os.utime(path, (0, 0))

        result = await TabnineProvider(logs, clock=clock).get_usage()

        assert result.status is ProviderStatus.ACTIVE
        assert result.usage is not None
        assert result.usage.total.request_count == 2
        assert result.usage.total.output_tokens == 15
        assert result.usage.total.input_tokens == 30
        assert result.usage.total.estimated is True
        assert result.usage.today.output_tokens == 10
