"""
Batch pipeline: one uploaded batch in, one BatchResult out.

  validate → normalize → (per employee, in worker threads)
  pair → resolve shift → daily metric → aggregate

Structural problems abort the whole call with BatchStructureError before
any employee is processed.  Per-record problems come back as
NormalizationError, per-employee configuration gaps as EmployeeFailure.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from zoneinfo import ZoneInfo

from attendance_engine.core.config import settings
from attendance_engine.core.exceptions import BatchStructureError, ConfigurationMissing
from attendance_engine.schemas.attendance import NormalizationError, PairingWarning, PunchEvent, RawPunchRecord
from attendance_engine.schemas.payroll import BatchResult, BatchStats, EmployeeFailure, PayrollBatch, PayrollSummary
from attendance_engine.schemas.settings import LeaveRecord
from attendance_engine.services.aggregator import aggregate
from attendance_engine.services.calculator import compute_daily_metric, period_dates, wage_rates
from attendance_engine.services.normalizer import load_zone, normalize
from attendance_engine.services.pairing import pair_events, sessions_by_date
from attendance_engine.services.punch_reader import read_punch_text
from attendance_engine.services.schedule_resolver import OrgContext, resolve_effective_shift

logger = logging.getLogger(__name__)

_month_year_re = re.compile(r"^\s*(\d{1,2})-(\d{4})\s*$")

_REASON_LABELS = {
    "MissingIdentifier": "missing identifier",
    "MissingTimestamp": "missing timestamp",
    "MalformedTimestamp": "malformed timestamp",
    "UnknownDirection": "unknown direction",
    "UnresolvedIdentifier": "unresolved identifier",
}

_WARNING_LABELS = {
    "MissingPunch": "unmatched punches",
    "DuplicatePunch": "duplicate punches ignored",
    "LabelMismatch": "sessions with contradicting in/out labels",
}


@dataclass
class _EmployeeOutcome:
    employee_id: str
    summary: PayrollSummary | None = None
    warnings: list[PairingWarning] = field(default_factory=list)
    failure: EmployeeFailure | None = None


def parse_month_year(value: str) -> tuple[date, date]:
    """``"MM-YYYY"`` → first and last day of that month."""
    match = _month_year_re.match(value)
    if not match:
        raise BatchStructureError(f"month_year must be MM-YYYY, got '{value}'")
    month, year = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise BatchStructureError(f"month_year has an invalid month: '{value}'")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _period(batch: PayrollBatch) -> tuple[date, date]:
    if batch.period_start is not None or batch.period_end is not None:
        if batch.period_start is None or batch.period_end is None:
            raise BatchStructureError("Both period_start and period_end are required")
        start, end = batch.period_start, batch.period_end
    elif batch.month_year:
        start, end = parse_month_year(batch.month_year)
    else:
        raise BatchStructureError("Batch has no period (period_start/period_end or month_year)")

    if end < start:
        raise BatchStructureError(f"period_end {end} is before period_start {start}")
    return start, end


def _raw_records(batch: PayrollBatch) -> list[RawPunchRecord]:
    if batch.records:
        return list(batch.records)
    if batch.file_content and batch.file_content.strip():
        records = read_punch_text(batch.file_content)
        if records:
            return records
    raise BatchStructureError("Batch contains no attendance records")


def _leave_index(leaves: list[LeaveRecord]) -> dict[tuple[str, date], LeaveRecord]:
    index: dict[tuple[str, date], LeaveRecord] = {}
    for leave in leaves:
        key = (leave.employee_id, leave.date)
        current = index.get(key)
        # a sanctioned record for the day is never replaced
        if current is None or current.status != "Sanctioned":
            index[key] = leave
    return index


def _employees_to_process(batch: PayrollBatch, branch_id: str, events: list[PunchEvent]) -> list[str]:
    selected = set(batch.employee_ids) if batch.employee_ids is not None else None
    employee_ids = {
        e.employee_id
        for e in batch.settings.employees
        if e.branch_id in (None, branch_id)
    }
    employee_ids.update(e.employee_id for e in events)
    if selected is not None:
        employee_ids &= selected
    return sorted(employee_ids)


def _process_employee(
    employee_id: str,
    events: list[PunchEvent],
    ctx: OrgContext,
    leaves: dict[tuple[str, date], LeaveRecord],
    period: tuple[date, date],
    tz: ZoneInfo,
) -> _EmployeeOutcome:
    start, end = period
    try:
        profile = ctx.employee(employee_id)
        rules = ctx.rule_config(employee_id)

        sessions, warnings = pair_events(events, tz)
        by_date = sessions_by_date(sessions)

        metrics = []
        for day in period_dates(start, end):
            shift = resolve_effective_shift(employee_id, day, ctx)
            metrics.append(
                compute_daily_metric(
                    employee_id,
                    by_date.get(day, []),
                    shift,
                    leaves.get((employee_id, day)),
                    rules,
                    wage_rates(profile, shift, tz),
                    tz,
                )
            )
    except ConfigurationMissing as exc:
        logger.warning("Employee %s not computed: %s", employee_id, exc)
        return _EmployeeOutcome(
            employee_id=employee_id,
            failure=EmployeeFailure(employee_id=employee_id, reason="ConfigurationMissing", message=str(exc)),
        )

    return _EmployeeOutcome(
        employee_id=employee_id,
        summary=aggregate(metrics, start, end, employee_id),
        warnings=[w for w in warnings if start <= w.work_date <= end],
    )


def summarize_warnings(
    errors: list[NormalizationError],
    warnings: list[PairingWarning],
    failures: list[EmployeeFailure],
) -> list[str]:
    """Operator-facing one-liners, e.g. ``"3 punches skipped: unresolved identifier"``."""
    lines: list[str] = []
    reasons = Counter(e.reason for e in errors)
    for reason, label in _REASON_LABELS.items():
        count = reasons.get(reason, 0)
        if count:
            lines.append(f"{count} {'punch' if count == 1 else 'punches'} skipped: {label}")

    kinds = Counter(w.kind for w in warnings)
    for kind, label in _WARNING_LABELS.items():
        if kinds.get(kind):
            lines.append(f"{kinds[kind]} {label}")

    if failures:
        noun = "employee" if len(failures) == 1 else "employees"
        lines.append(f"{len(failures)} {noun} not computed: configuration missing")
    return lines


def process_batch(batch: PayrollBatch, *, max_workers: int | None = None) -> BatchResult:
    """
    Compute payroll summaries for every employee of the batch.

    Raises:
        BatchStructureError: the batch has no branch, no usable period, no
            records, or an unknown timezone.
    """
    branch_id = (batch.branch_id or "").strip()
    if not branch_id:
        raise BatchStructureError("Batch has no branch_id")
    period_start, period_end = _period(batch)
    tz = load_zone(batch.timezone or batch.settings.timezone)
    records = _raw_records(batch)

    logger.info(
        "Processing batch: branch=%s, period=%s..%s, records=%d, tz=%s",
        branch_id, period_start, period_end, len(records), tz.key,
    )

    events, errors = normalize(records, batch.directory, tz=tz)

    events_by_employee: dict[str, list[PunchEvent]] = defaultdict(list)
    for event in events:
        events_by_employee[event.employee_id].append(event)

    employee_ids = _employees_to_process(batch, branch_id, events)
    ctx = OrgContext.from_snapshot(batch.settings)
    leaves = _leave_index(batch.leaves)

    workers = max(1, min(max_workers or settings.MAX_WORKERS, len(employee_ids)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(
            executor.map(
                lambda emp_id: _process_employee(
                    emp_id, events_by_employee.get(emp_id, []), ctx, leaves, (period_start, period_end), tz
                ),
                employee_ids,
            )
        )

    summaries = [o.summary for o in outcomes if o.summary is not None]
    failures = [o.failure for o in outcomes if o.failure is not None]
    warnings = [w for o in outcomes for w in o.warnings]

    logger.info(
        "Batch done: branch=%s, employees=%d, failed=%d, skipped_records=%d, warnings=%d",
        branch_id, len(summaries), len(failures), len(errors), len(warnings),
    )

    return BatchResult(
        branch_id=branch_id,
        period_start=period_start,
        period_end=period_end,
        summaries=summaries,
        normalization_errors=errors,
        pairing_warnings=warnings,
        failures=failures,
        warning_summary=summarize_warnings(errors, warnings, failures),
        stats=BatchStats(
            total_records=len(records),
            normalized_events=len(events),
            skipped_records=len(errors),
            employees_processed=len(summaries),
            employees_failed=len(failures),
            dates_processed=len(period_dates(period_start, period_end)),
        ),
    )
