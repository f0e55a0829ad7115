from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, TypeVar

from usagetally.models import UsageData

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Decoded:
    """
    Decoded is the match value of a format decoder: the canonical
    counters plus the record's own timestamp and model, if it
    carries them.
    """

    usage: "UsageData"
    timestamp: "datetime | None" = None
    model: "str | None" = None


# a decoder returns None when the raw record is not in its format
Decoder = Callable[[Any], "Decoded | None"]


def first_match(
    decoders: "Iterable[Callable[[Any], T | None]]",
    raw: "Any",
) -> "T | None":
    """
    applies decoders in order and returns the first match. Later
    decoders never see a record an earlier one accepted.
    """
    for decoder in decoders:
        decoded = decoder(raw)
        if decoded is not None:
            return decoded
    return None


def coerce_count(value: "Any") -> "int":
    """
    converts a raw counter to a non-negative int. Missing,
    non-numeric and negative values become 0.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value or value in (float("inf"), float("-inf")):
        return 0
    return max(int(value), 0)


def first_count(mapping: "dict[str, Any]", *keys: "str") -> "int":
    """
    returns the counter of the first key present with a numeric
    value.
    """
    for key in keys:
        value = mapping.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return coerce_count(value)
    return 0
