from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from usagetally.models import ProviderStatus, TimeRange
from usagetally.provider.openai_codex import (
    STATUS_ERRORS,
    USAGE_URL,
    OpenAICodexProvider,
    bucket_usage,
)
from usagetally.timewindow import Clock


def _bucket(start: "datetime", **counts: "int") -> "dict[str, object]":
    return {
        "object": "bucket",
        "start_time": int(start.timestamp()),
        "end_time": int((start + timedelta(days=1)).timestamp()),
        "results": [{"object": "organization.usage.completions.result", **counts}],
    }


class TestBucketUsage:
    def test_moves_cached_tokens_out_of_input(self) -> "None":
        usage = bucket_usage(
            {
                "input_tokens": 1000,
                "input_cached_tokens": 400,
                "output_tokens": 50,
                "num_model_requests": 3,
            }
        )
        assert usage.input_tokens == 600
        assert usage.cache_read_tokens == 400
        assert usage.output_tokens == 50
        assert usage.request_count == 3

    def test_missing_fields_are_zero(self) -> "None":
        assert bucket_usage({}).is_empty()


class TestOpenAICodexProvider:
    @pytest.mark.asyncio
    async def test_no_key(self, clock: "Clock") -> "None":
        result = await OpenAICodexProvider(api_key="", clock=clock).get_usage()
        assert result.status is ProviderStatus.NO_KEY
        assert result.usage is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_and_buckets_usage(
        self,
        clock: "Clock",
        now: "datetime",
    ) -> "None":
        today = now.replace(hour=0)
        route = respx.get(USAGE_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "object": "page",
                    "data": [
                        _bucket(
                            today - timedelta(days=5),
                            input_tokens=100,
                            output_tokens=10,
                            num_model_requests=1,
                        ),
                        _bucket(
                            today,
                            input_tokens=300,
                            input_cached_tokens=100,
                            output_tokens=30,
                            num_model_requests=2,
                        ),
                    ],
                    "has_more": False,
                },
            )
        )

        result = await OpenAICodexProvider(api_key="sk-test", clock=clock).get_usage()

        assert result.status is ProviderStatus.ACTIVE
        assert result.data_source == "OpenAI API"
        assert result.usage is not None
        assert result.usage.total.input_tokens == 300
        assert result.usage.total.cache_read_tokens == 100
        assert result.usage.total.request_count == 3
        assert result.usage.today.input_tokens == 200
        assert result.usage.this_week.input_tokens == 200
        assert result.usage.this_month.input_tokens == 300

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer sk-test"
        # without a hint the query starts at the beginning of the month
        month_start = datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert request.url.params["start_time"] == str(int(month_start.timestamp()))
        assert request.url.params["bucket_width"] == "1d"

    @pytest.mark.asyncio
    @respx.mock
    async def test_handles_pagination(self, clock: "Clock", now: "datetime") -> "None":
        route = respx.get(USAGE_URL).mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "data": [_bucket(now, input_tokens=1, num_model_requests=1)],
                        "has_more": True,
                        "next_page": "page_2",
                    },
                ),
                httpx.Response(
                    200,
                    json={
                        "data": [_bucket(now, input_tokens=2, num_model_requests=1)],
                        "has_more": False,
                    },
                ),
            ]
        )

        result = await OpenAICodexProvider(api_key="sk-test", clock=clock).get_usage()

        assert result.usage is not None
        assert result.usage.total.input_tokens == 3
        assert route.call_count == 2
        assert route.calls[1].request.url.params["page"] == "page_2"

    @pytest.mark.asyncio
    @respx.mock
    async def test_time_range_sets_query_start(self, clock: "Clock") -> "None":
        route = respx.get(USAGE_URL).mock(
            return_value=httpx.Response(200, json={"data": [], "has_more": False}),
        )
        start = datetime(2026, 9, 1, tzinfo=timezone.utc)
        time_range = TimeRange(start, start + timedelta(days=30))

        await OpenAICodexProvider(api_key="sk-test", clock=clock).get_usage(time_range)

        assert route.calls.last.request.url.params["start_time"] == str(
            int(start.timestamp())
        )

    @pytest.mark.parametrize("status_code", sorted(STATUS_ERRORS))
    @pytest.mark.asyncio
    async def test_classified_status_codes(
        self,
        status_code: "int",
        clock: "Clock",
    ) -> "None":
        with respx.mock:
            respx.get(USAGE_URL).mock(return_value=httpx.Response(status_code))
            provider = OpenAICodexProvider(api_key="sk-test", clock=clock)
            result = await provider.get_usage()

        assert result.status is ProviderStatus.ERROR
        assert result.error == STATUS_ERRORS[status_code]

    @pytest.mark.asyncio
    @respx.mock
    async def test_unexpected_status(self, clock: "Clock") -> "None":
        respx.get(USAGE_URL).mock(return_value=httpx.Response(502))

        result = await OpenAICodexProvider(api_key="sk-test", clock=clock).get_usage()

        assert result.status is ProviderStatus.ERROR
        assert "HTTP 502" in (result.error or "")

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error(self, clock: "Clock") -> "None":
        respx.get(USAGE_URL).mock(side_effect=httpx.ConnectError("refused"))

        result = await OpenAICodexProvider(api_key="sk-test", clock=clock).get_usage()

        assert result.status is ProviderStatus.ERROR
        assert result.error == "Network error connecting to OpenAI API."

    @pytest.mark.asyncio
    @respx.mock
    async def test_invalid_body(self, clock: "Clock") -> "None":
        respx.get(USAGE_URL).mock(return_value=httpx.Response(200, content=b"<html>"))

        result = await OpenAICodexProvider(api_key="sk-test", clock=clock).get_usage()

        assert result.status is ProviderStatus.ERROR
        assert result.error == "Failed to parse OpenAI API response."
