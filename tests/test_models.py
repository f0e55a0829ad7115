from datetime import datetime, timedelta, timezone

from usagetally.models import (
    ProviderResult,
    ProviderStatus,
    TimeRange,
    UsageData,
    UsageStats,
)
from usagetally.timewindow import TimeWindows


def _sample(n: "int") -> "UsageData":
    return UsageData(
        input_tokens=n,
        output_tokens=2 * n,
        cache_read_tokens=3 * n,
        cache_write_tokens=4 * n,
        request_count=1,
        estimated_cost=0.5 * n,
    )


class TestTimeRange:
    def test_contains_is_inclusive(self) -> "None":
        start = datetime(2026, 10, 1, tzinfo=timezone.utc)
        end = datetime(2026, 10, 2, tzinfo=timezone.utc)
        span = TimeRange(start, end)

        assert span.contains(start)
        assert span.contains(end)
        assert span.contains(start + timedelta(hours=1))
        assert not span.contains(start - timedelta(microseconds=1))
        assert not span.contains(end + timedelta(microseconds=1))


class TestUsageData:
    def test_total_tokens_sums_all_token_counters(self) -> "None":
        usage = UsageData(
            input_tokens=1,
            output_tokens=2,
            cache_read_tokens=3,
            cache_write_tokens=4,
            request_count=100,
        )
        assert usage.total_tokens == 10

    def test_add_is_field_wise(self) -> "None":
        total = UsageData().add(_sample(1)).add(_sample(2))

        assert total.input_tokens == 3
        assert total.output_tokens == 6
        assert total.cache_read_tokens == 9
        assert total.cache_write_tokens == 12
        assert total.request_count == 2
        assert total.estimated_cost == 1.5

    def test_add_is_associative_and_commutative(self) -> "None":
        a, b, c = _sample(1), _sample(5), _sample(7)

        left = a.copy().add(b).add(c)
        right = a.copy().add(b.copy().add(c))
        swapped = c.copy().add(a).add(b)

        assert left.to_dict() == right.to_dict() == swapped.to_dict()

    def test_zero_is_identity(self) -> "None":
        usage = _sample(3)
        assert usage.copy().add(UsageData()).to_dict() == usage.to_dict()

    def test_estimated_flag_is_sticky(self) -> "None":
        usage = UsageData(input_tokens=1).add(UsageData(output_tokens=1, estimated=True))
        assert usage.estimated is True

        usage.add(UsageData(input_tokens=1))
        assert usage.estimated is True

    def test_is_empty(self) -> "None":
        assert UsageData().is_empty()
        assert not UsageData(request_count=1).is_empty()
        assert not UsageData(cache_read_tokens=1).is_empty()

    def test_copy_is_independent(self) -> "None":
        usage = _sample(1)
        clone = usage.copy()
        clone.add(_sample(1))
        assert usage.input_tokens == 1


class TestUsageStats:
    def test_record_without_timestamp_counts_only_towards_total(
        self,
        windows: "TimeWindows",
    ) -> "None":
        stats = UsageStats()
        stats.record(UsageData(input_tokens=10), None, windows)

        assert stats.total.input_tokens == 10
        assert stats.today.is_empty()
        assert stats.this_week.is_empty()
        assert stats.this_month.is_empty()

    def test_record_assigns_windows_by_timestamp(
        self,
        windows: "TimeWindows",
        now: "datetime",
    ) -> "None":
        stats = UsageStats()
        # today, earlier this week, earlier this month, last year
        stats.record(UsageData(input_tokens=1), now - timedelta(hours=1), windows)
        stats.record(UsageData(input_tokens=10), now - timedelta(days=2), windows)
        stats.record(UsageData(input_tokens=100), now - timedelta(days=10), windows)
        stats.record(UsageData(input_tokens=1000), now - timedelta(days=365), windows)

        assert stats.today.input_tokens == 1
        assert stats.this_week.input_tokens == 11
        assert stats.this_month.input_tokens == 111
        assert stats.total.input_tokens == 1111

    def test_windows_never_exceed_total(
        self,
        windows: "TimeWindows",
        now: "datetime",
    ) -> "None":
        stats = UsageStats()
        for days in range(0, 40, 3):
            stats.record(_sample(1), now - timedelta(days=days), windows)
        stats.record(_sample(1), None, windows)

        for bucket in (stats.today, stats.this_week, stats.this_month):
            assert bucket.total_tokens <= stats.total.total_tokens
            assert bucket.request_count <= stats.total.request_count
        assert stats.today.total_tokens <= stats.this_week.total_tokens


class TestProviderResult:
    def test_constructors_set_status(self) -> "None":
        assert ProviderResult.not_found("a", "A").status is ProviderStatus.NOT_FOUND
        assert ProviderResult.no_key("a", "A").status is ProviderStatus.NO_KEY
        assert (
            ProviderResult.auth_required("a", "A").status
            is ProviderStatus.AUTH_REQUIRED
        )
        assert ProviderResult.error_result("a", "A", "x").status is ProviderStatus.ERROR

    def test_to_dict_omits_absent_fields(self) -> "None":
        data = ProviderResult.not_found("cursor", "Cursor").to_dict()
        assert data == {
            "name": "cursor",
            "display_name": "Cursor",
            "status": "not_found",
        }

    def test_to_dict_of_active_result(self) -> "None":
        stats = UsageStats()
        stats.total.add(UsageData(input_tokens=3, output_tokens=4, estimated=True))
        data = ProviderResult.active("warp", "Warp AI", stats, "/tmp/warp.sqlite").to_dict()

        assert data["status"] == "active"
        assert data["data_source"] == "/tmp/warp.sqlite"
        assert data["usage"]["total"]["total_tokens"] == 7
        assert data["usage"]["total"]["estimated"] is True
        assert set(data["usage"]) == {"today", "this_week", "this_month", "total"}
        assert "error" not in data

    def test_unsupported_carries_reason_and_source(self) -> "None":
        result = ProviderResult.unsupported("w", "W", "encrypted", "/logs")
        assert result.error == "encrypted"
        assert result.data_source == "/logs"
        assert result.usage is None

    def test_labels(self) -> "None":
        assert ProviderStatus.NOT_FOUND.label == "N/A"
        assert ProviderStatus.LINK_ONLY.label == "Link Only"
