"""
Daily payroll metric computation.

Combines one day's work sessions with the effective shift for that day, the
employee's leave record and the organization's attendance rules.

Pay for the day is additive: worked hours plus overtime hours times the
overtime rate, times the hourly wage, minus the deduction.  Overtime minutes
are therefore paid once as worked time and again as premium.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from attendance_engine.core.config import settings
from attendance_engine.schemas.attendance import WorkSession
from attendance_engine.schemas.payroll import DailyAttendanceMetric, DayStatus, EffectiveShift, WageRates
from attendance_engine.schemas.settings import AttendanceRuleConfig, EmployeeProfile, LateDeductionRule, LeaveRecord

logger = logging.getLogger(__name__)


def _minutes(delta: timedelta) -> int:
    return max(int(delta.total_seconds() // 60), 0)


def shift_window(shift: EffectiveShift, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Aware start/end instants of a working shift; a night shift ends on the next day."""
    start = datetime.combine(shift.date, shift.start_time, tzinfo=tz)
    end = datetime.combine(shift.date, shift.end_time, tzinfo=tz)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def _scheduled_hours(shift: EffectiveShift, tz: ZoneInfo) -> float:
    if shift.is_work_day and shift.start_time is not None and shift.end_time is not None:
        start, end = shift_window(shift, tz)
        return _minutes(end - start) / 60
    return 0.0


def wage_rates(profile: EmployeeProfile, shift: EffectiveShift, tz: ZoneInfo) -> WageRates:
    """
    Daily and hourly wage for one employee-day.

    With a monthly salary the daily wage is the salary spread over the days of
    the month, and unless the profile sets an hourly rate, the hourly rate is
    that daily wage over the scheduled hours (STANDARD_WORKDAY_HOURS on days
    without a shift).  Without a salary the daily wage is the hourly rate
    times the scheduled hours.
    """
    hours = _scheduled_hours(shift, tz)

    if profile.monthly_salary is not None:
        days = calendar.monthrange(shift.date.year, shift.date.month)[1]
        daily = profile.monthly_salary / days
        hourly = profile.hourly_rate
        if hourly is None:
            hourly = daily / (hours or settings.STANDARD_WORKDAY_HOURS)
        return WageRates(hourly=hourly, daily=daily)

    hourly = 1.0 if profile.hourly_rate is None else profile.hourly_rate
    return WageRates(hourly=hourly, daily=hourly * hours)


def _per_minute_charge(rule: LateDeductionRule, wage: WageRates) -> float:
    if rule.mode == "Fixed":
        return rule.rate_per_minute
    return rule.rate_per_minute / 100 * wage.per_minute


def _lateness_status(late: int, rule: LateDeductionRule) -> DayStatus:
    if rule.absent_threshold_minutes is not None and late >= rule.absent_threshold_minutes:
        return "Absent"
    if rule.half_day_threshold_minutes is not None and late >= rule.half_day_threshold_minutes:
        return "HalfDay"
    return "Present"


def _day_pay(worked: int, overtime: int, rules: AttendanceRuleConfig, wage: WageRates, deduction: float) -> float:
    hours = worked / 60 + overtime / 60 * rules.overtime_rate
    return round(hours * wage.hourly - deduction, 2)


def compute_daily_metric(
    employee_id: str,
    sessions: Sequence[WorkSession],
    effective_shift: EffectiveShift,
    leave_record: LeaveRecord | None,
    rules: AttendanceRuleConfig,
    wage: WageRates,
    tz: ZoneInfo,
) -> DailyAttendanceMetric:
    """
    Compute the metric for one employee-day.

    Business-rule anomalies never raise; they show up in ``status`` and
    ``remarks``.
    """
    sessions = sorted(sessions, key=lambda s: s.entry_time)
    closed = [s for s in sessions if not s.is_open]
    has_open = len(closed) != len(sessions)
    base = {"employee_id": employee_id, "date": effective_shift.date, "effective_shift": effective_shift, "sessions": sessions}

    if leave_record is not None and leave_record.status == "Sanctioned":
        return DailyAttendanceMetric(
            **base,
            worked_minutes=0,
            late_minutes=0,
            overtime_minutes=0,
            status="Leave",
            deduction_amount=0.0,
            remarks=f"Sanctioned leave{f' ({leave_record.leave_type})' if leave_record.leave_type else ''}",
            final_pay=0.0,
        )

    worked = sum(s.duration_minutes for s in closed)

    if not effective_shift.is_work_day:
        remarks = [effective_shift.description] if effective_shift.description else []
        if has_open:
            remarks.append("Unmatched punch")
        return DailyAttendanceMetric(
            **base,
            worked_minutes=worked,
            late_minutes=0,
            overtime_minutes=0,
            status="Holiday" if effective_shift.source == "Holiday" else "OffDay",
            deduction_amount=0.0,
            remarks="; ".join(remarks),
            final_pay=_day_pay(worked, 0, rules, wage, 0.0),
        )

    rule = rules.late_deduction

    if not sessions:
        deduction = 0.0
        note = "No punches"
        if rules.leave_rules.charge_absence:
            deduction = round(wage.daily * rules.leave_rules.unsanctioned_multiplier, 2)
            note = f"No punches; unsanctioned absence charged {deduction:.2f}"
        return DailyAttendanceMetric(
            **base,
            worked_minutes=0,
            late_minutes=0,
            overtime_minutes=0,
            status="Absent",
            deduction_amount=deduction,
            remarks=note,
            final_pay=_day_pay(0, 0, rules, wage, deduction),
        )

    start, end = shift_window(effective_shift, tz)

    overtime = 0
    for s in closed:
        if s.exit_time > end:
            overtime += _minutes(s.exit_time - max(s.entry_time, end))

    late = 0
    early = 0
    if closed:
        late = _minutes(closed[0].entry_time - (start + timedelta(minutes=effective_shift.grace_minutes)))
        # an open session means the employee came back after the last closed exit
        if not has_open:
            early = _minutes(end - closed[-1].exit_time)

    remarks: list[str] = []
    deduction = 0.0
    status: DayStatus = "Present"
    if rule.enabled:
        charge = _per_minute_charge(rule, wage)
        deduction = min(late, rule.max_deduction_minutes) * charge
        if late:
            remarks.append(f"Late {late} min")
        if rule.penalize_early_leave and early:
            deduction += min(early, rule.max_deduction_minutes) * charge
            remarks.append(f"Early leave {early} min")
        deduction = round(deduction, 2)
        status = _lateness_status(late, rule)

    if has_open:
        status = "MissingPunch"
        remarks.append("Unmatched punch")

    logger.debug(
        "Metric %s %s: worked=%d late=%d overtime=%d status=%s deduction=%.2f",
        employee_id, effective_shift.date, worked, late, overtime, status, deduction,
    )

    return DailyAttendanceMetric(
        **base,
        worked_minutes=worked,
        late_minutes=late,
        overtime_minutes=overtime,
        early_leave_minutes=early,
        status=status,
        deduction_amount=deduction,
        remarks="; ".join(remarks),
        final_pay=_day_pay(worked, overtime, rules, wage, deduction),
    )


def period_dates(period_start: date, period_end: date) -> list[date]:
    days = (period_end - period_start).days
    return [period_start + timedelta(days=i) for i in range(days + 1)]
