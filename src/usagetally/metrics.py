from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from usagetally.models import ProviderResult, ProviderStatus

TOKEN_KINDS: "tuple[str, ...]" = (
    "input",
    "output",
    "cache_read",
    "cache_write",
)


def create_report_metrics(
    registry: "CollectorRegistry" = REGISTRY,
) -> "dict[str, Gauge]":
    """
    creates the gauge families describing a usage report.
     - tokens: tokens per provider, window (today, this_week,
     this_month, total) and kind (input/output/cache_read/cache_write).
     - requests: request count per provider and window.
     - cost_usd: estimated cost per provider and window.
     - status: 1 for the status each provider reported.
    """
    return {
        "tokens": Gauge(
            "usagetally_tokens",
            "Tokens used per provider, window and kind",
            ["provider", "window", "kind"],
            registry=registry,
        ),
        "requests": Gauge(
            "usagetally_requests",
            "Requests per provider and window",
            ["provider", "window"],
            registry=registry,
        ),
        "cost_usd": Gauge(
            "usagetally_cost_usd",
            "Estimated cost in USD per provider and window",
            ["provider", "window"],
            registry=registry,
        ),
        "status": Gauge(
            "usagetally_provider_status",
            "Status reported by each provider (1 for the active status)",
            ["provider", "status"],
            registry=registry,
        ),
    }


class MetricsUpdater:
    """
    applies ProviderResult data and collection timings to Prometheus
    metrics.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._report = create_report_metrics(registry)
        self._collection_duration: "Histogram" = Histogram(
            "usagetally_collection_duration_seconds",
            "Duration of each provider's usage query",
            ["provider"],
            registry=registry,
        )
        self._collections: "Counter" = Counter(
            "usagetally_collections_total",
            "Provider usage queries by resulting status",
            ["provider", "status"],
            registry=registry,
        )

    @property
    def registry(self) -> "CollectorRegistry":
        return self._registry

    def observe_collection(
        self,
        provider: "str",
        status: "ProviderStatus",
        duration_seconds: "float",
    ) -> "None":
        self._collection_duration.labels(provider=provider).observe(duration_seconds)
        self._collections.labels(provider=provider, status=status.value).inc()

    def update_result(self, result: "ProviderResult") -> "None":
        """
        sets the report gauges for one provider. Buckets are only
        exported for active results.
        """
        for status in ProviderStatus:
            self._report["status"].labels(
                provider=result.name,
                status=status.value,
            ).set(1 if status is result.status else 0)

        if result.usage is None:
            return

        for window, bucket in result.usage.buckets().items():
            counts = (
                bucket.input_tokens,
                bucket.output_tokens,
                bucket.cache_read_tokens,
                bucket.cache_write_tokens,
            )
            for kind, value in zip(TOKEN_KINDS, counts):
                self._report["tokens"].labels(
                    provider=result.name,
                    window=window,
                    kind=kind,
                ).set(value)
            self._report["requests"].labels(provider=result.name, window=window).set(
                bucket.request_count
            )
            self._report["cost_usd"].labels(provider=result.name, window=window).set(
                bucket.estimated_cost
            )

    def exposition(self) -> "str":
        return generate_latest(self._registry).decode("utf-8")
