from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from student_portal_client.records import CanonicalRecord, format_display_date, parse_instant

# Preset name -> label shown in the filter menu.
PRESETS: dict[str, str] = {
    "today": "Today",
    "yesterday": "Yesterday",
    "lastWeek": "Last 7 Days",
    "last2Weeks": "Last 2 Weeks",
    "lastMonth": "Last 30 Days",
    "thisMonth": "This Month",
}


@dataclass(frozen=True)
class DateRange:
    start: date | None = None
    end: date | None = None

    @property
    def is_set(self) -> bool:
        return self.start is not None and self.end is not None

    @classmethod
    def between(cls, start: date | datetime, end: date | datetime, tz: tzinfo) -> DateRange:
        """Build a range from calendar days, dropping any time-of-day component."""
        return cls(start=_calendar_day(start, tz), end=_calendar_day(end, tz))

    def bounds(self, tz: tzinfo) -> tuple[datetime, datetime]:
        if not self.is_set:
            raise ValueError("Range is unset")
        return (
            datetime.combine(self.start, time.min, tzinfo=tz),
            datetime.combine(self.end, time.max, tzinfo=tz),
        )

    def label(self) -> str:
        if not self.is_set:
            return ""
        return f"{format_display_date(self.start)} - {format_display_date(self.end)}"


UNSET_RANGE = DateRange()


def _calendar_day(value: date | datetime, tz: tzinfo) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def today_in(tz: tzinfo) -> date:
    return datetime.now(tz).date()


def preset_to_range(name: str, today: date) -> DateRange:
    """Resolve a named preset against ``today``; unknown names give UNSET_RANGE."""
    if name == "today":
        return DateRange(today, today)
    if name == "yesterday":
        yesterday = today - timedelta(days=1)
        return DateRange(yesterday, yesterday)
    if name == "lastWeek":
        return DateRange(today - timedelta(days=7), today)
    if name == "last2Weeks":
        return DateRange(today - timedelta(days=14), today)
    if name == "lastMonth":
        return DateRange(today - timedelta(days=30), today)
    if name == "thisMonth":
        return DateRange(today.replace(day=1), today)
    return UNSET_RANGE


def filter_records(
    records: Iterable[CanonicalRecord],
    date_range: DateRange,
    tz: tzinfo,
) -> list[CanonicalRecord]:
    """Keep records whose timestamp lies within the range's days, inclusive.

    Order is preserved. An unset range returns every record.
    """
    if not date_range.is_set:
        return list(records)
    start, end = date_range.bounds(tz)
    return [record for record in records if start <= record.timestamp <= end]


def parse_calendar_day(text: str, tz: tzinfo) -> date | None:
    """Parse user input such as ``2026-01-15`` or ``1/15/2026`` into a day."""
    moment = parse_instant(text, tz)
    if moment is None:
        return None
    return moment.date()
