"""
Batch pipeline tests.

Tests:
  - test_normal_batch               : summaries for both employees, sorted
  - test_idempotent                 : identical inputs → byte-identical JSON
  - test_unresolved_identifier      : record skipped, batch completes, warning line
  - test_employee_failure           : one employee misconfigured, the other completes
  - test_missing_rules              : every employee fails, batch still returns
  - test_structural_errors          : no branch / period / records, bad timezone
  - test_month_year                 : "MM-YYYY" period
  - test_file_content               : delimited text instead of records
  - test_employee_filter            : employee_ids restricts the output
  - test_worker_count_irrelevant    : 1 vs many workers → same output
"""

from __future__ import annotations

from datetime import date

import pytest

from attendance_engine.core.exceptions import BatchStructureError
from attendance_engine.schemas.settings import EmployeeProfile, LeaveRecord
from attendance_engine.services.pipeline import parse_month_year, process_batch, summarize_warnings
from tests.helpers import MONDAY, raw


class TestProcessBatch:
    def test_normal_batch(self, batch):
        result = process_batch(batch)

        assert result.branch_id == "BR1"
        assert [s.employee_id for s in result.summaries] == ["E1", "E2"]
        assert result.failures == []
        assert result.normalization_errors == []

        day = result.summaries[0].daily_metrics[0]
        assert day.worked_minutes == 500
        assert day.late_minutes == 10
        assert day.overtime_minutes == 30
        assert day.status == "Present"
        # Fixed 1.0 per late minute
        assert day.deduction_amount == 10.0

        assert result.stats.total_records == 4
        assert result.stats.normalized_events == 4
        assert result.stats.employees_processed == 2
        assert result.stats.dates_processed == 1

    def test_idempotent(self, batch):
        first = process_batch(batch).model_dump_json()
        second = process_batch(batch.model_copy(deep=True)).model_dump_json()
        assert first == second

    def test_worker_count_irrelevant(self, batch):
        assert process_batch(batch, max_workers=1).model_dump_json() == process_batch(batch, max_workers=8).model_dump_json()

    def test_unresolved_identifier(self, batch):
        batch = batch.model_copy(update={"records": batch.records + [raw("999", "2024-03-04 09:00")]})
        result = process_batch(batch)

        assert len(result.summaries) == 2
        assert [e.reason for e in result.normalization_errors] == ["UnresolvedIdentifier"]
        assert result.stats.skipped_records == 1
        assert "1 punch skipped: unresolved identifier" in result.warning_summary

    def test_employee_failure(self, batch):
        settings = batch.settings.model_copy(
            update={
                "employees": [
                    EmployeeProfile(employee_id="E1", branch_id="BR1", shift_id="day"),
                    EmployeeProfile(employee_id="E2", branch_id="BR1", shift_id="missing"),
                ]
            }
        )
        result = process_batch(batch.model_copy(update={"settings": settings}))

        assert [s.employee_id for s in result.summaries] == ["E1"]
        assert len(result.failures) == 1
        assert result.failures[0].employee_id == "E2"
        assert result.failures[0].reason == "ConfigurationMissing"
        assert "1 employee not computed: configuration missing" in result.warning_summary

    def test_employee_in_events_but_not_in_roster(self, batch):
        settings = batch.settings.model_copy(
            update={"employees": [EmployeeProfile(employee_id="E1", branch_id="BR1", shift_id="day")]}
        )
        result = process_batch(batch.model_copy(update={"settings": settings}))

        assert [s.employee_id for s in result.summaries] == ["E1"]
        assert [f.employee_id for f in result.failures] == ["E2"]

    def test_missing_rules(self, batch):
        settings = batch.settings.model_copy(update={"rules": None})
        result = process_batch(batch.model_copy(update={"settings": settings}))

        assert result.summaries == []
        assert {f.employee_id for f in result.failures} == {"E1", "E2"}

    def test_leave_and_absence(self, batch):
        batch = batch.model_copy(
            update={
                "period_end": date(2024, 3, 5),
                "leaves": [LeaveRecord(employee_id="E2", date=date(2024, 3, 5), status="Sanctioned")],
            }
        )
        result = process_batch(batch)
        e1, e2 = result.summaries

        assert e1.absent_days == 1
        assert e2.leave_days == 1
        assert e2.absent_days == 0

    def test_employee_filter(self, batch):
        result = process_batch(batch.model_copy(update={"employee_ids": ["E2"]}))
        assert [s.employee_id for s in result.summaries] == ["E2"]

    def test_month_year(self, batch):
        batch = batch.model_copy(update={"period_start": None, "period_end": None, "month_year": "03-2024"})
        result = process_batch(batch)

        assert (result.period_start, result.period_end) == (date(2024, 3, 1), date(2024, 3, 31))
        assert len(result.summaries[0].daily_metrics) == 31

    def test_file_content(self, batch):
        content = (
            "EnNo\tName\tMode\tIn/Out\tDateTime\n"
            "00101\tAsha Verma\tFP\tDutyOn\t2024-03-04 09:10:00\n"
            "00101\tAsha Verma\tFP\tDutyOff\t2024-03-04 17:30:00\n"
        )
        result = process_batch(batch.model_copy(update={"records": [], "file_content": content}))

        e1 = result.summaries[0]
        assert e1.employee_id == "E1"
        assert e1.daily_metrics[0].worked_minutes == 500

    def test_pairing_warnings_reported(self, batch):
        batch = batch.model_copy(update={"records": [raw("101", "2024-03-04 09:05")]})
        result = process_batch(batch)

        assert [w.kind for w in result.pairing_warnings] == ["MissingPunch"]
        assert result.summaries[0].missing_punch_days == 1
        assert "1 unmatched punches" in result.warning_summary


class TestStructuralErrors:
    @pytest.mark.parametrize(
        "update, message",
        [
            ({"branch_id": None}, "branch"),
            ({"branch_id": "  "}, "branch"),
            ({"period_start": None, "period_end": None}, "period"),
            ({"period_end": None}, "period_end"),
            ({"period_end": date(2024, 3, 1)}, "before"),
            ({"records": []}, "no attendance records"),
            ({"timezone": "Nowhere/Special"}, "timezone"),
            ({"period_start": None, "period_end": None, "month_year": "2024-03"}, "MM-YYYY"),
        ],
    )
    def test_structural_errors(self, batch, update, message):
        with pytest.raises(BatchStructureError, match=message):
            process_batch(batch.model_copy(update=update))


class TestHelpers:
    def test_parse_month_year(self):
        assert parse_month_year("02-2024") == (date(2024, 2, 1), date(2024, 2, 29))
        with pytest.raises(BatchStructureError):
            parse_month_year("13-2024")

    def test_summarize_warnings_empty(self):
        assert summarize_warnings([], [], []) == []


def test_period_dates_reported(batch):
    result = process_batch(batch.model_copy(update={"period_end": date(2024, 3, 10)}))
    assert result.stats.dates_processed == 7
    e1 = result.summaries[0]
    assert e1.status_counts["OffDay"] == 2
    assert e1.period_start == MONDAY
