"""
Session pairer tests.

Tests:
  - test_permutation_gives_same_sessions : any input order → identical sessions
  - test_count_invariant                 : N events → N//2 closed + N%2 open
  - test_count_invariant_identical_events: repeated identical punches still count
  - test_positional_pairing              : labels ignored, mismatch reported
  - test_single_punch_opens_session      : open session + MissingPunch warning
  - test_midnight_closes_day             : punches either side of midnight stay on their own day
  - test_local_day_split                 : day boundary follows the organization zone
  - test_duplicates_dropped              : exact repeats removed and reported when enabled
  - test_multiple_employees              : output ordered by employee then date
"""

from __future__ import annotations

import itertools
import random
from datetime import date
from zoneinfo import ZoneInfo

import pytest

from attendance_engine.services.pairing import pair_events, sessions_by_date
from tests.helpers import UTC, at, event

DAY = "2024-03-04"


def _day_events(n: int):
    times = ["08:00", "12:00", "12:30", "17:00", "18:00", "19:00", "20:00"]
    return [event("E1", DAY, hm, "in" if i % 2 == 0 else "out") for i, hm in enumerate(times[:n])]


class TestDeterminism:
    def test_permutation_gives_same_sessions(self):
        events = _day_events(5)
        expected, expected_warnings = pair_events(events, UTC)

        for perm in itertools.permutations(events):
            sessions, warnings = pair_events(list(perm), UTC)
            assert sessions == expected
            assert warnings == expected_warnings

    def test_same_instant_tie_break(self):
        a = event("E1", DAY, "09:00", "in", device_id="T1")
        b = event("E1", DAY, "09:00", "out", device_id="T2")
        c = event("E1", DAY, "17:00", "out")
        first, _ = pair_events([a, b, c], UTC)
        second, _ = pair_events([c, b, a], UTC)
        assert first == second

    def test_shuffled_large_input(self):
        events = [event("E1", f"2024-03-0{d}", hm) for d in range(4, 9) for hm in ("09:00", "13:00", "14:00", "18:00")]
        expected, _ = pair_events(events, UTC)
        rng = random.Random(7)
        for _ in range(20):
            shuffled = events[:]
            rng.shuffle(shuffled)
            assert pair_events(shuffled, UTC)[0] == expected


class TestPairing:
    @pytest.mark.parametrize("n", range(0, 8))
    def test_count_invariant(self, n):
        sessions, warnings = pair_events(_day_events(n), UTC)

        closed = [s for s in sessions if not s.is_open]
        open_ = [s for s in sessions if s.is_open]
        assert len(closed) == n // 2
        assert len(open_) == n % 2
        assert len([w for w in warnings if w.kind == "MissingPunch"]) == n % 2
        if open_:
            assert open_[0] == sessions[-1]

    @pytest.mark.parametrize("copies", [2, 3])
    def test_count_invariant_identical_events(self, copies):
        events = [event("E1", DAY, "09:00", device_id="T1") for _ in range(copies)]
        events.append(event("E1", DAY, "17:00", "out", device_id="T1"))
        n = len(events)

        sessions, warnings = pair_events(events, UTC)

        assert len([s for s in sessions if not s.is_open]) == n // 2
        assert len([s for s in sessions if s.is_open]) == n % 2
        assert "DuplicatePunch" not in [w.kind for w in warnings]

    def test_positional_pairing(self):
        events = [
            event("E1", DAY, "09:00", "out"),
            event("E1", DAY, "17:00", "out"),
        ]
        sessions, warnings = pair_events(events, UTC)

        assert len(sessions) == 1
        assert sessions[0].entry_time == at(DAY, "09:00")
        assert sessions[0].exit_time == at(DAY, "17:00")
        assert sessions[0].duration_minutes == 480
        assert [w.kind for w in warnings] == ["LabelMismatch"]

    def test_single_punch_opens_session(self):
        sessions, warnings = pair_events([event("E1", DAY, "09:05")], UTC)

        assert len(sessions) == 1
        assert sessions[0].is_open
        assert sessions[0].duration_minutes == 0
        assert warnings[0].kind == "MissingPunch"
        assert warnings[0].work_date == date(2024, 3, 4)

    def test_no_events(self):
        assert pair_events([], UTC) == ([], [])


class TestDayBoundary:
    def test_midnight_closes_day(self):
        events = [
            event("E1", "2024-03-04", "22:00"),
            event("E1", "2024-03-05", "06:00", "out"),
        ]
        sessions, warnings = pair_events(events, UTC)

        assert [s.work_date for s in sessions] == [date(2024, 3, 4), date(2024, 3, 5)]
        assert all(s.is_open for s in sessions)
        assert [w.kind for w in warnings] == ["MissingPunch", "MissingPunch"]

    def test_local_day_split(self):
        kolkata = ZoneInfo("Asia/Kolkata")
        # 20:00 and 20:30 UTC are 01:30 and 02:00 the next day in Kolkata
        events = [
            event("E1", "2024-03-04", "20:00"),
            event("E1", "2024-03-04", "20:30", "out"),
        ]
        utc_sessions, _ = pair_events(events, UTC)
        local_sessions, _ = pair_events(events, kolkata)

        assert utc_sessions[0].work_date == date(2024, 3, 4)
        assert local_sessions[0].work_date == date(2024, 3, 5)
        assert local_sessions[0].entry_time.tzinfo == kolkata


class TestWarnings:
    def test_duplicates_dropped(self):
        events = [
            event("E1", DAY, "09:00", device_id="T1"),
            event("E1", DAY, "09:00", device_id="T1"),
            event("E1", DAY, "17:00", "out", device_id="T1"),
        ]
        sessions, warnings = pair_events(events, UTC, drop_duplicates=True)

        assert len(sessions) == 1
        assert not sessions[0].is_open
        assert [w.kind for w in warnings] == ["DuplicatePunch"]

    def test_same_instant_other_device_is_kept(self):
        events = [
            event("E1", DAY, "09:00", device_id="T1"),
            event("E1", DAY, "09:00", device_id="T2"),
        ]
        sessions, warnings = pair_events(events, UTC)
        assert len(sessions) == 1
        assert sessions[0].duration_minutes == 0
        assert [w.kind for w in warnings] == ["LabelMismatch"]


def test_multiple_employees():
    events = [
        event("E2", "2024-03-05", "09:00"),
        event("E1", "2024-03-05", "09:00"),
        event("E1", "2024-03-04", "09:00"),
    ]
    sessions, _ = pair_events(events, UTC)

    assert [(s.employee_id, s.work_date.day) for s in sessions] == [("E1", 4), ("E1", 5), ("E2", 5)]
    grouped = sessions_by_date(sessions)
    assert len(grouped[date(2024, 3, 5)]) == 2
