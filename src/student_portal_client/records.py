from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any

from loguru import logger

DEFAULT_SUBJECT = "Class"

_CONTAINER_KEYS = ("records", "attendances", "attendance")
_ID_KEYS = ("id", "_id", "attendanceId")

# Tried in order after ISO 8601.
_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y, %I:%M:%S %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d",
)


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"

    @classmethod
    def parse(cls, value: object) -> AttendanceStatus | None:
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class CanonicalRecord:
    id: str
    status: AttendanceStatus
    date: str
    timestamp: datetime
    subject: str = DEFAULT_SUBJECT


def local_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo or timezone.utc


def parse_instant(value: object, tz: tzinfo) -> datetime | None:
    """Parse a raw date value into an aware datetime in ``tz``.

    Naive values are read as wall-clock time in ``tz``; values carrying an
    offset are converted into it. Numbers are epoch milliseconds. Returns
    None when nothing parses.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = _parse_text(value.strip())
        if parsed is None:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    try:
        return parsed.astimezone(tz)
    except (OverflowError, ValueError):
        return None


def _parse_text(text: str) -> datetime | None:
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def format_display_date(moment: datetime) -> str:
    return f"{moment.month}/{moment.day}/{moment.year}"


def normalize_record(raw: object, tz: tzinfo, *, position: int = 0) -> CanonicalRecord | None:
    """Build a CanonicalRecord, or None when the raw record is unusable.

    ``timestamp`` prefers the ``timestamp`` field and falls back to ``date``;
    the display date prefers ``date`` and falls back to ``timestamp``.
    """
    if not isinstance(raw, dict):
        return None

    status = AttendanceStatus.parse(raw.get("status"))
    if status is None:
        return None

    from_timestamp = parse_instant(raw.get("timestamp"), tz)
    from_date = parse_instant(raw.get("date"), tz)
    timestamp = from_timestamp or from_date
    if timestamp is None:
        return None

    record_id = position
    for key in _ID_KEYS:
        candidate = raw.get(key)
        if candidate not in (None, ""):
            record_id = candidate
            break

    subject = raw.get("subject")
    if not isinstance(subject, str) or not subject.strip():
        subject = DEFAULT_SUBJECT

    return CanonicalRecord(
        id=str(record_id),
        status=status,
        date=format_display_date(from_date or timestamp),
        timestamp=timestamp,
        subject=subject,
    )


def extract_container(payload: Any) -> list:
    """Return the record array from a response body.

    Raises ValueError when the body carries no recognizable array or reports
    ``success: false``.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected payload type: {type(payload).__name__}")
    if payload.get("success") is False:
        raise ValueError(f"Service reported failure: {payload.get('error', 'unknown error')}")
    for key in _CONTAINER_KEYS:
        container = payload.get(key)
        if isinstance(container, list):
            return container
    raise ValueError("Payload has no attendance array")


def normalize_payload(payload: Any, tz: tzinfo) -> list[CanonicalRecord]:
    raw_records = extract_container(payload)
    records: list[CanonicalRecord] = []
    for position, raw in enumerate(raw_records):
        record = normalize_record(raw, tz, position=position)
        if record is not None:
            records.append(record)

    dropped = len(raw_records) - len(records)
    if dropped:
        logger.debug(f"Dropped {dropped} of {len(raw_records)} attendance record(s) during normalization")
    return records
