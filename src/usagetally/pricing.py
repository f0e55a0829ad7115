"""
Model pricing used to estimate cost when a source only reports tokens.

Prices are USD per million tokens. The table is built once at start-up
and handed to the providers that need it.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from usagetally.models import UsageData

DEFAULT_MODEL_KEY = "default"

# cache reads bill at a tenth of the input price, cache writes at a premium
CACHE_READ_MULTIPLIER = 0.1
CACHE_WRITE_MULTIPLIER = 1.25


@dataclass(frozen=True, slots=True)
class ModelPricing:
    input_per_million: "float"
    output_per_million: "float"


@dataclass(frozen=True)
class PricingTable:
    """
    PricingTable is an immutable model -> ModelPricing lookup.

    Lookups try an exact match, then a substring match in either
    direction (longest key first, so "gpt-4o-mini" is preferred over
    "gpt-4"), then fall back to the default entry.
    """

    prices: "Mapping[str, ModelPricing]"

    def __post_init__(self) -> "None":
        if DEFAULT_MODEL_KEY not in self.prices:
            raise ValueError("pricing table needs a 'default' entry")
        object.__setattr__(
            self,
            "prices",
            MappingProxyType({k.lower(): v for k, v in self.prices.items()}),
        )

    @classmethod
    def default(cls) -> "PricingTable":
        return cls(DEFAULT_PRICES)

    def lookup(self, model: "str | None") -> "ModelPricing":
        if not model:
            return self.prices[DEFAULT_MODEL_KEY]

        model = model.lower()
        if model in self.prices:
            return self.prices[model]

        for key in sorted(self.prices, key=len, reverse=True):
            if key == DEFAULT_MODEL_KEY:
                continue
            if key in model or model in key:
                return self.prices[key]

        return self.prices[DEFAULT_MODEL_KEY]

    def cost(
        self,
        input_tokens: "int",
        output_tokens: "int",
        model: "str | None" = None,
        cache_read_tokens: "int" = 0,
        cache_write_tokens: "int" = 0,
    ) -> "float":
        pricing = self.lookup(model)
        input_price = pricing.input_per_million / 1_000_000
        output_price = pricing.output_per_million / 1_000_000
        return (
            input_tokens * input_price
            + output_tokens * output_price
            + cache_read_tokens * input_price * CACHE_READ_MULTIPLIER
            + cache_write_tokens * input_price * CACHE_WRITE_MULTIPLIER
        )

    def cost_of(self, usage: "UsageData", model: "str | None" = None) -> "float":
        return self.cost(
            usage.input_tokens,
            usage.output_tokens,
            model,
            cache_read_tokens=usage.cache_read_tokens,
            cache_write_tokens=usage.cache_write_tokens,
        )

    def fill_cost(self, usage: "UsageData", model: "str | None" = None) -> "UsageData":
        """
        prices one record from the table unless the source already
        reported a cost for it. Records are priced before they are
        folded, so a bucket mixing reported and computed costs sums both.
        """
        if usage.estimated_cost == 0.0 and usage.has_tokens():
            usage.estimated_cost = self.cost_of(usage, model)
        return usage


DEFAULT_PRICES: "Mapping[str, ModelPricing]" = MappingProxyType(
    {
        # Anthropic
        "claude-3-opus": ModelPricing(15.0, 75.0),
        "claude-3-sonnet": ModelPricing(3.0, 15.0),
        "claude-3-haiku": ModelPricing(0.25, 1.25),
        "claude-3.5-sonnet": ModelPricing(3.0, 15.0),
        "claude-3.5-haiku": ModelPricing(0.8, 4.0),
        "claude-sonnet-4": ModelPricing(3.0, 15.0),
        "claude-opus-4": ModelPricing(15.0, 75.0),
        # OpenAI
        "gpt-4": ModelPricing(30.0, 60.0),
        "gpt-4-turbo": ModelPricing(10.0, 30.0),
        "gpt-4o": ModelPricing(2.5, 10.0),
        "gpt-4o-mini": ModelPricing(0.15, 0.6),
        "gpt-3.5-turbo": ModelPricing(0.5, 1.5),
        "o1": ModelPricing(15.0, 60.0),
        "o1-mini": ModelPricing(3.0, 12.0),
        # Google
        "gemini-pro": ModelPricing(0.5, 1.5),
        "gemini-1.5-pro": ModelPricing(1.25, 5.0),
        "gemini-1.5-flash": ModelPricing(0.075, 0.3),
        "gemini-2.0-flash": ModelPricing(0.1, 0.4),
        DEFAULT_MODEL_KEY: ModelPricing(1.0, 3.0),
    }
)
