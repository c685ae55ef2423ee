"""
Period aggregation of daily metrics into one PayrollSummary per employee.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import date

from attendance_engine.schemas.payroll import DailyAttendanceMetric, PayrollSummary

logger = logging.getLogger(__name__)


def aggregate(
    daily_metrics: Iterable[DailyAttendanceMetric],
    period_start: date,
    period_end: date,
    employee_id: str = "",
) -> PayrollSummary:
    """
    Fold daily metrics into period totals.

    Metrics dated outside [period_start, period_end] are ignored.  The result
    does not depend on the order of ``daily_metrics``; an empty input gives an
    all-zero summary.
    """
    in_period = sorted(
        (m for m in daily_metrics if period_start <= m.date <= period_end),
        key=lambda m: (m.date, m.employee_id),
    )
    if in_period and not employee_id:
        employee_id = in_period[0].employee_id

    statuses = Counter(m.status for m in in_period)
    worked = sum(m.worked_minutes for m in in_period)
    overtime = sum(m.overtime_minutes for m in in_period)

    return PayrollSummary(
        employee_id=employee_id,
        period_start=period_start,
        period_end=period_end,
        total_worked_hours=round(worked / 60, 2),
        total_overtime_hours=round(overtime / 60, 2),
        total_late_minutes=sum(m.late_minutes for m in in_period),
        late_days=sum(1 for m in in_period if m.late_minutes > 0),
        total_late_deductions=round(sum(m.deduction_amount for m in in_period), 2),
        total_pay=round(sum(m.final_pay for m in in_period), 2),
        absent_days=statuses["Absent"],
        half_days=statuses["HalfDay"],
        leave_days=statuses["Leave"],
        missing_punch_days=statuses["MissingPunch"],
        status_counts=dict(sorted(statuses.items())),
        daily_metrics=in_period,
    )
