from typing import Any

import httpx
import structlog

from usagetally.models import ProviderResult, TimeRange, UsageData, UsageStats
from usagetally.provider.decoding import coerce_count
from usagetally.timestamps import parse_epoch
from usagetally.timewindow import Clock, TimeWindows, local_time_ranges

logger = structlog.get_logger()

OPENAI_BASE_URL = "https://api.openai.com/v1/organization"
USAGE_URL = f"{OPENAI_BASE_URL}/usage/completions"

# status code -> message for responses that end the query
STATUS_ERRORS: "dict[int, str]" = {
    401: "Invalid API key. Please check your OPENAI_API_KEY.",
    403: (
        "API key lacks permission to access organization usage data "
        "(requires an admin key or the usage:read scope)."
    ),
    404: "Usage API endpoint not found. This may require an organization account.",
    429: "Rate limited by OpenAI API. Please try again later.",
}


class UsageQueryError(Exception):
    """
    raised inside the provider for a response it can classify.
    """


def bucket_usage(result: "dict[str, Any]") -> "UsageData":
    """
    converts one usage result to canonical counters. OpenAI counts
    cached prompt tokens inside input_tokens, they are moved to
    cache_read_tokens so they are not counted twice.
    """
    cached = coerce_count(result.get("input_cached_tokens"))
    input_tokens = coerce_count(result.get("input_tokens"))
    return UsageData(
        input_tokens=max(input_tokens - cached, 0),
        output_tokens=coerce_count(result.get("output_tokens")),
        cache_read_tokens=cached,
        request_count=coerce_count(result.get("num_model_requests")),
    )


class OpenAICodexProvider:
    """
    OpenAICodexProvider queries the OpenAI organization usage API
    for completions usage since the start of the local month,
    following pagination until no more pages are available.
    """

    def __init__(
        self,
        api_key: "str" = "",
        clock: "Clock" = local_time_ranges,
        timeout: "float" = 10.0,
    ) -> "None":
        self._api_key = api_key
        self._clock = clock
        self._timeout = timeout

    @property
    def name(self) -> "str":
        return "openai-codex"

    @property
    def display_name(self) -> "str":
        return "OpenAI Codex"

    async def is_available(self) -> "bool":
        return bool(self._api_key)

    def paths_to_check(self) -> "list[str]":
        return ["OPENAI_API_KEY environment variable"]

    async def get_usage(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "ProviderResult":
        if not self._api_key:
            return ProviderResult.no_key(self.name, self.display_name)

        windows = self._clock()
        start = time_range.start if time_range is not None else windows.month.start

        try:
            stats = await self._fetch_usage(int(start.timestamp()), windows)
        except UsageQueryError as exc:
            return ProviderResult.error_result(self.name, self.display_name, str(exc))
        except httpx.HTTPError as exc:
            logger.warning("openai_request_failed", error=str(exc))
            return ProviderResult.error_result(
                self.name,
                self.display_name,
                "Network error connecting to OpenAI API.",
            )
        except ValueError as exc:
            logger.warning("openai_response_invalid", error=str(exc))
            return ProviderResult.error_result(
                self.name,
                self.display_name,
                "Failed to parse OpenAI API response.",
            )

        return ProviderResult.active(self.name, self.display_name, stats, "OpenAI API")

    async def _fetch_usage(
        self,
        start_time: "int",
        windows: "TimeWindows",
    ) -> "UsageStats":
        stats = UsageStats()
        next_page = ""

        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {self._api_key}"},
        ) as client:
            # while structure to handle pagination until no more
            # pages are available
            while True:
                params: "dict[str, str | int]" = {
                    "start_time": start_time,
                    "bucket_width": "1d",
                    "limit": 31,
                }
                if next_page:
                    params["page"] = next_page

                logger.debug("openai_fetch_usage", url=USAGE_URL, page=next_page)
                resp = await client.get(USAGE_URL, params=params)

                if resp.status_code in STATUS_ERRORS:
                    raise UsageQueryError(STATUS_ERRORS[resp.status_code])
                if resp.status_code != 200:
                    raise UsageQueryError(
                        f"Unexpected response from OpenAI API (HTTP {resp.status_code})."
                    )

                data = resp.json()
                if not isinstance(data, dict):
                    raise ValueError("usage response is not an object")

                for bucket in data.get("data") or []:
                    if not isinstance(bucket, dict):
                        continue
                    timestamp = None
                    bucket_start = bucket.get("start_time")
                    if isinstance(bucket_start, int):
                        timestamp = parse_epoch(bucket_start)
                    for result in bucket.get("results") or []:
                        if not isinstance(result, dict):
                            continue
                        stats.record(bucket_usage(result), timestamp, windows)

                if not data.get("has_more"):
                    break

                next_page = data.get("next_page") or ""
                if not next_page:
                    break

        logger.debug("openai_usage_done", requests=stats.total.request_count)
        return stats
