"""Small builders shared by the test modules."""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from attendance_engine.schemas.attendance import PunchEvent, RawPunchRecord, WorkSession

UTC = ZoneInfo("UTC")

MONDAY = date(2024, 3, 4)
SATURDAY = date(2024, 3, 9)


def at(day: str, hm: str, tz: ZoneInfo = UTC) -> datetime:
    """``at("2024-03-04", "09:10")`` → aware datetime."""
    return datetime.fromisoformat(f"{day}T{hm}").replace(tzinfo=tz)


def event(
    employee_id: str,
    day: str,
    hm: str,
    direction: str = "in",
    mode: str = "",
    device_id: str = "",
    tz: ZoneInfo = UTC,
) -> PunchEvent:
    return PunchEvent(
        employee_id=employee_id,
        timestamp=at(day, hm, tz),
        direction=direction,
        mode=mode,
        device_id=device_id,
    )


def session(employee_id: str, day: str, entry: str, exit_: str | None = None) -> WorkSession:
    return WorkSession(
        employee_id=employee_id,
        work_date=date.fromisoformat(day),
        entry_time=at(day, entry),
        exit_time=at(day, exit_) if exit_ else None,
    )


def raw(identifier: str | None, timestamp: str | datetime | None, **kwargs) -> RawPunchRecord:
    return RawPunchRecord(identifier=identifier, timestamp=timestamp, **kwargs)
