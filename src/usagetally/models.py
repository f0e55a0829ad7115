import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from usagetally.timewindow import TimeWindows


@dataclass(frozen=True, slots=True)
class TimeRange:
    """
    TimeRange is an inclusive [start, end] span of aware
    UTC instants.
    """

    start: "datetime"
    end: "datetime"

    def contains(self, instant: "datetime") -> "bool":
        return self.start <= instant <= self.end


@dataclass(slots=True)
class UsageData:
    """
    UsageData holds the canonical additive counters for a
    single time bucket.

    Counters must be non-negative. Adapters clamp raw values
    before building an instance, add() never subtracts.
    """

    input_tokens: "int" = 0
    output_tokens: "int" = 0
    cache_read_tokens: "int" = 0
    cache_write_tokens: "int" = 0
    request_count: "int" = 0
    estimated_cost: "float" = 0.0
    # set when the counters were approximated, e.g. an invented
    # input/output split of a combined token count
    estimated: "bool" = False

    @property
    def total_tokens(self) -> "int":
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_read_tokens
            + self.cache_write_tokens
        )

    def has_tokens(self) -> "bool":
        return self.total_tokens > 0

    def is_empty(self) -> "bool":
        return self.total_tokens == 0 and self.request_count == 0

    def add(self, other: "UsageData") -> "UsageData":
        """
        adds other into this bucket field by field and returns self
        so calls can be chained.
        """
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.cache_write_tokens += other.cache_write_tokens
        self.request_count += other.request_count
        self.estimated_cost += other.estimated_cost
        self.estimated = self.estimated or other.estimated
        return self

    def copy(self) -> "UsageData":
        return UsageData().add(self)

    def to_dict(self) -> "dict[str, Any]":
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_write_tokens": self.cache_write_tokens,
            "total_tokens": self.total_tokens,
            "request_count": self.request_count,
            "estimated_cost": self.estimated_cost,
            "estimated": self.estimated,
        }


@dataclass(slots=True)
class UsageStats:
    """
    UsageStats groups the four buckets reported for a provider.

    total receives every folded record. The windowed buckets only
    receive records whose resolved timestamp lies inside their
    range, so a record without a timestamp counts towards total
    alone.
    """

    today: "UsageData" = field(default_factory=UsageData)
    this_week: "UsageData" = field(default_factory=UsageData)
    this_month: "UsageData" = field(default_factory=UsageData)
    total: "UsageData" = field(default_factory=UsageData)

    def record(
        self,
        usage: "UsageData",
        timestamp: "datetime | None",
        windows: "TimeWindows",
    ) -> "None":
        self.total.add(usage)
        if timestamp is None:
            return

        if windows.today.contains(timestamp):
            self.today.add(usage)
        if windows.week.contains(timestamp):
            self.this_week.add(usage)
        if windows.month.contains(timestamp):
            self.this_month.add(usage)

    def buckets(self) -> "dict[str, UsageData]":
        return {
            "today": self.today,
            "this_week": self.this_week,
            "this_month": self.this_month,
            "total": self.total,
        }

    def to_dict(self) -> "dict[str, Any]":
        return {key: bucket.to_dict() for key, bucket in self.buckets().items()}


class ProviderStatus(enum.Enum):
    ACTIVE = "active"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    NO_KEY = "no_key"
    AUTH_REQUIRED = "auth_required"
    ERROR = "error"
    LINK_ONLY = "link_only"

    @property
    def label(self) -> "str":
        return _STATUS_LABELS[self]


_STATUS_LABELS: "dict[ProviderStatus, str]" = {
    ProviderStatus.ACTIVE: "Active",
    ProviderStatus.UNSUPPORTED: "Unsupported",
    ProviderStatus.NOT_FOUND: "N/A",
    ProviderStatus.NO_KEY: "No Key",
    ProviderStatus.AUTH_REQUIRED: "Auth Required",
    ProviderStatus.ERROR: "Error",
    ProviderStatus.LINK_ONLY: "Link Only",
}


@dataclass(frozen=True, slots=True)
class ProviderResult:
    """
    ProviderResult is the terminal classification of one
    get_usage() call.

    Build instances through the classmethod constructors, they
    keep the payload consistent with the status: usage only for
    active results, error only for error/unsupported, and
    data_source only for active/unsupported/link_only.
    """

    name: "str"
    display_name: "str"
    status: "ProviderStatus"
    usage: "UsageStats | None" = None
    error: "str | None" = None
    data_source: "str | None" = None

    @classmethod
    def active(
        cls,
        name: "str",
        display_name: "str",
        usage: "UsageStats",
        data_source: "str",
    ) -> "ProviderResult":
        return cls(
            name,
            display_name,
            ProviderStatus.ACTIVE,
            usage=usage,
            data_source=data_source,
        )

    @classmethod
    def unsupported(
        cls,
        name: "str",
        display_name: "str",
        reason: "str",
        data_source: "str | None" = None,
    ) -> "ProviderResult":
        return cls(
            name,
            display_name,
            ProviderStatus.UNSUPPORTED,
            error=reason,
            data_source=data_source,
        )

    @classmethod
    def not_found(cls, name: "str", display_name: "str") -> "ProviderResult":
        return cls(name, display_name, ProviderStatus.NOT_FOUND)

    @classmethod
    def no_key(cls, name: "str", display_name: "str") -> "ProviderResult":
        return cls(name, display_name, ProviderStatus.NO_KEY)

    @classmethod
    def auth_required(cls, name: "str", display_name: "str") -> "ProviderResult":
        return cls(name, display_name, ProviderStatus.AUTH_REQUIRED)

    @classmethod
    def error_result(
        cls,
        name: "str",
        display_name: "str",
        message: "str",
    ) -> "ProviderResult":
        return cls(name, display_name, ProviderStatus.ERROR, error=message)

    @classmethod
    def link_only(
        cls,
        name: "str",
        display_name: "str",
        url: "str",
    ) -> "ProviderResult":
        return cls(name, display_name, ProviderStatus.LINK_ONLY, data_source=url)

    def to_dict(self) -> "dict[str, Any]":
        data: "dict[str, Any]" = {
            "name": self.name,
            "display_name": self.display_name,
            "status": self.status.value,
        }
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        if self.error is not None:
            data["error"] = self.error
        if self.data_source is not None:
            data["data_source"] = self.data_source
        return data
