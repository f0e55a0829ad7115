import asyncio
import time
from typing import Sequence

import structlog

from usagetally.metrics import MetricsUpdater
from usagetally.models import ProviderResult, TimeRange
from usagetally.provider.base import UsageProvider

logger = structlog.get_logger()


def filter_providers(
    providers: "Sequence[UsageProvider]",
    tool: "str | None",
) -> "list[UsageProvider]":
    """
    keeps providers whose name contains tool, or whose display name
    contains it ignoring case. No filter keeps everything.
    """
    if not tool:
        return list(providers)

    needle = tool.lower()
    return [
        p
        for p in providers
        if tool in p.name or needle in p.display_name.lower()
    ]


class Collector:
    """
    Collector queries every registered provider concurrently and
    returns one ProviderResult per provider, in registration order
    whatever order the queries finish in.

    Each provider runs in isolation: a provider that raises, returns
    garbage or (when a timeout is set) takes too long gets an error
    result of its own while the others carry on.
    """

    def __init__(
        self,
        providers: "Sequence[UsageProvider]",
        metrics_updater: "MetricsUpdater | None" = None,
        timeout: "float | None" = None,
    ) -> "None":
        self._providers = list(providers)
        self._metrics = metrics_updater
        # None or 0 disables the per-provider timeout
        self._timeout = timeout or None

    @property
    def providers(self) -> "list[UsageProvider]":
        return list(self._providers)

    async def collect(
        self,
        time_range: "TimeRange | None" = None,
    ) -> "list[ProviderResult]":
        logger.info("collection_start", providers=len(self._providers))

        tasks = [
            self._collect_provider(provider, time_range)
            for provider in self._providers
        ]
        # gather keeps the order of its arguments
        results = await asyncio.gather(*tasks)

        logger.info("collection_end")
        return list(results)

    async def _collect_provider(
        self,
        provider: "UsageProvider",
        time_range: "TimeRange | None",
    ) -> "ProviderResult":
        name = display_name = type(provider).__name__
        started = time.monotonic()

        try:
            name, display_name = provider.name, provider.display_name
            result = await asyncio.wait_for(
                provider.get_usage(time_range),
                timeout=self._timeout,
            )
        except TimeoutError as exc:
            if self._timeout is None:
                # raised by the provider itself, not by wait_for
                logger.exception("provider_fault", provider=name)
                message = str(exc) or type(exc).__name__
            else:
                logger.warning("provider_timeout", provider=name, timeout=self._timeout)
                message = f"timed out after {self._timeout:g}s"
            result = ProviderResult.error_result(name, display_name, message)
        except Exception as exc:
            logger.exception("provider_fault", provider=name)
            result = ProviderResult.error_result(
                name,
                display_name,
                str(exc) or type(exc).__name__,
            )
        else:
            if not isinstance(result, ProviderResult):
                logger.error(
                    "provider_bad_result",
                    provider=name,
                    result_type=type(result).__name__,
                )
                result = ProviderResult.error_result(
                    name,
                    display_name,
                    f"provider returned {type(result).__name__}, not a result",
                )

        duration = time.monotonic() - started
        logger.debug(
            "provider_done",
            provider=name,
            status=result.status.value,
            duration=round(duration, 3),
        )
        if self._metrics is not None:
            self._metrics.observe_collection(name, result.status, duration)

        return result
