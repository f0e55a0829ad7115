from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from usagetally.timewindow import TimeWindows, local_time_ranges


class TestLocalTimeRanges:
    def test_utc_boundaries(self, windows: "TimeWindows", now: "datetime") -> "None":
        assert windows.today.start == datetime(2026, 10, 20, tzinfo=timezone.utc)
        # 2026-10-20 is a Tuesday, weeks start on Sunday
        assert windows.week.start == datetime(2026, 10, 18, tzinfo=timezone.utc)
        assert windows.month.start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert windows.today.end == windows.week.end == windows.month.end == now

    def test_windows_nest(self, windows: "TimeWindows") -> "None":
        assert windows.month.start <= windows.today.start
        assert windows.week.start <= windows.today.start

    def test_sunday_is_its_own_week_start(self) -> "None":
        sunday = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)
        windows = local_time_ranges(now=sunday, tz=timezone.utc)
        assert windows.week.start == windows.today.start

    def test_week_may_start_in_previous_month(self) -> "None":
        # Friday 2 October, the week began on Sunday 27 September
        windows = local_time_ranges(
            now=datetime(2026, 10, 2, 8, tzinfo=timezone.utc),
            tz=timezone.utc,
        )
        assert windows.week.start == datetime(2026, 9, 27, tzinfo=timezone.utc)
        assert windows.month.start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert windows.week.start < windows.month.start

    def test_naive_now_is_utc(self) -> "None":
        windows = local_time_ranges(now=datetime(2026, 10, 20, 12), tz=timezone.utc)
        assert windows.today.end == datetime(2026, 10, 20, 12, tzinfo=timezone.utc)

    def test_boundaries_are_local_midnights(self) -> "None":
        tz = timezone(timedelta(hours=-5))
        # 02:00 UTC on the 20th is still the 19th at UTC-5
        windows = local_time_ranges(
            now=datetime(2026, 10, 20, 2, tzinfo=timezone.utc),
            tz=tz,
        )
        assert windows.today.start == datetime(2026, 10, 19, 5, tzinfo=timezone.utc)
        assert windows.today.start.tzinfo == timezone.utc

    def test_dst_transition(self) -> "None":
        tz = ZoneInfo("America/New_York")
        # Monday 9 March 2026, the day after clocks moved forward
        windows = local_time_ranges(
            now=datetime(2026, 3, 9, 15, tzinfo=timezone.utc),
            tz=tz,
        )
        # today's midnight is in EDT (UTC-4), Sunday's is still EST (UTC-5)
        assert windows.today.start == datetime(2026, 3, 9, 4, tzinfo=timezone.utc)
        assert windows.week.start == datetime(2026, 3, 8, 5, tzinfo=timezone.utc)
        assert windows.month.start == datetime(2026, 3, 1, 5, tzinfo=timezone.utc)

    def test_defaults_to_host_zone(self) -> "None":
        windows = local_time_ranges()
        assert windows.today.start <= windows.today.end
        assert windows.today.start.tzinfo == timezone.utc
