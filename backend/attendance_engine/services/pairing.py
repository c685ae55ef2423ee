"""
Session pairer.

Events are ordered, split into local calendar days and paired by position:
the 1st and 2nd punch of a day form a session, the 3rd and 4th the next one,
and so on.  Direction labels are not used to match punches because device
labelling is unreliable; a label that contradicts the position is only
reported.  A trailing unmatched punch opens a session with no exit.

Sessions never cross midnight: each punch belongs to its own local day.
Every event counts towards the pairing unless duplicate dropping is switched
on (DROP_DUPLICATE_PUNCHES or ``drop_duplicates=True``).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from zoneinfo import ZoneInfo

from attendance_engine.core.config import settings
from attendance_engine.schemas.attendance import PairingWarning, PunchEvent, WorkSession

logger = logging.getLogger(__name__)


def _sort_key(event: PunchEvent) -> tuple:
    return (event.timestamp, event.direction, event.mode, event.device_id)


def _dedupe(
    events: list[PunchEvent], tz: ZoneInfo
) -> tuple[list[PunchEvent], list[PairingWarning]]:
    """Drop exact repeats (same instant, direction, mode and device) of a sorted sequence."""
    kept: list[PunchEvent] = []
    warnings: list[PairingWarning] = []
    previous: tuple | None = None
    for event in events:
        key = _sort_key(event)
        if key == previous:
            local = event.timestamp.astimezone(tz)
            warnings.append(
                PairingWarning(
                    kind="DuplicatePunch",
                    employee_id=event.employee_id,
                    work_date=local.date(),
                    timestamp=local,
                    message=f"Duplicate punch at {local.isoformat()} ignored",
                )
            )
            continue
        previous = key
        kept.append(event)
    return kept, warnings


def _pair_day(
    employee_id: str, work_date: date, day_events: list[PunchEvent], tz: ZoneInfo
) -> tuple[list[WorkSession], list[PairingWarning]]:
    sessions: list[WorkSession] = []
    warnings: list[PairingWarning] = []

    for i in range(0, len(day_events), 2):
        entry = day_events[i]
        exit_ = day_events[i + 1] if i + 1 < len(day_events) else None
        entry_time = entry.timestamp.astimezone(tz)

        if exit_ is None:
            sessions.append(WorkSession(employee_id=employee_id, work_date=work_date, entry_time=entry_time))
            warnings.append(
                PairingWarning(
                    kind="MissingPunch",
                    employee_id=employee_id,
                    work_date=work_date,
                    timestamp=entry_time,
                    message=f"No matching punch for {entry_time.isoformat()}",
                )
            )
            continue

        exit_time = exit_.timestamp.astimezone(tz)
        sessions.append(
            WorkSession(employee_id=employee_id, work_date=work_date, entry_time=entry_time, exit_time=exit_time)
        )
        if entry.direction != "in" or exit_.direction != "out":
            warnings.append(
                PairingWarning(
                    kind="LabelMismatch",
                    employee_id=employee_id,
                    work_date=work_date,
                    timestamp=entry_time,
                    message=(
                        f"Session {entry_time.time().isoformat()}-{exit_time.time().isoformat()} "
                        f"labelled {entry.direction}/{exit_.direction}"
                    ),
                )
            )

    return sessions, warnings


def pair_events(
    events: Iterable[PunchEvent], tz: ZoneInfo, *, drop_duplicates: bool | None = None
) -> tuple[list[WorkSession], list[PairingWarning]]:
    """
    Pair punch events into work sessions.

    Accepts events of one or several employees in any order.  Output is
    ordered by employee, date and entry time and depends only on the set of
    input events.
    """
    if drop_duplicates is None:
        drop_duplicates = settings.DROP_DUPLICATE_PUNCHES
    by_employee: dict[str, list[PunchEvent]] = defaultdict(list)
    for event in events:
        by_employee[event.employee_id].append(event)

    sessions: list[WorkSession] = []
    warnings: list[PairingWarning] = []

    for employee_id in sorted(by_employee):
        ordered = sorted(by_employee[employee_id], key=_sort_key)
        dup_warnings: list[PairingWarning] = []
        if drop_duplicates:
            ordered, dup_warnings = _dedupe(ordered, tz)
            warnings.extend(dup_warnings)

        by_day: dict[date, list[PunchEvent]] = defaultdict(list)
        for event in ordered:
            by_day[event.timestamp.astimezone(tz).date()].append(event)

        for work_date in sorted(by_day):
            day_sessions, day_warnings = _pair_day(employee_id, work_date, by_day[work_date], tz)
            sessions.extend(day_sessions)
            warnings.extend(day_warnings)

        logger.debug(
            "Paired employee %s: events=%d, days=%d, duplicates=%d",
            employee_id, len(ordered), len(by_day), len(dup_warnings),
        )

    return sessions, warnings


def sessions_by_date(sessions: Iterable[WorkSession]) -> dict[date, list[WorkSession]]:
    grouped: dict[date, list[WorkSession]] = defaultdict(list)
    for session in sessions:
        grouped[session.work_date].append(session)
    return dict(grouped)
