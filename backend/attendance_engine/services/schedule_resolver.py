"""
Effective shift resolution.

For one employee and one date the shift that actually applies is found by
overlaying, first match wins:

  1. Holiday               (unless the employee has an explicit override that day)
  2. EmployeeDateOverride
  3. CustomShiftAssignment (employee-specific before branch-wide)
  4. ScheduleDateOverride  (date_overrides of the employee's recurring shift)
  5. RecurringSchedule     (working weekday, or a non-working day of the shift)
  6. Unscheduled           (employee has no recurring shift)

Missing reference data (shift definitions not loaded, unknown employee,
dangling shift id) raises ConfigurationMissing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType

from attendance_engine.core.exceptions import ConfigurationMissing
from attendance_engine.schemas.payroll import EffectiveShift
from attendance_engine.schemas.settings import (
    WEEKDAYS,
    AttendanceRuleConfig,
    CustomShiftAssignment,
    EmployeeDateOverride,
    EmployeeProfile,
    Holiday,
    OrgSettingsSnapshot,
    ShiftDefinition,
)


@dataclass(frozen=True)
class OrgContext:
    """Read-only lookup indexes over an OrgSettingsSnapshot."""

    rules: AttendanceRuleConfig | None
    shifts: Mapping[str, ShiftDefinition] | None
    employees: Mapping[str, EmployeeProfile]
    holidays: Mapping[date, Holiday]
    employee_overrides: Mapping[tuple[str, date], EmployeeDateOverride]
    # key employee_id is None for branch-wide assignments
    custom_shifts: Mapping[tuple[str | None, date], CustomShiftAssignment]

    @classmethod
    def from_snapshot(cls, snapshot: OrgSettingsSnapshot) -> OrgContext:
        # Later entries win when the snapshot repeats a key
        shifts = None
        if snapshot.shift_definitions is not None:
            shifts = MappingProxyType({s.id: s for s in snapshot.shift_definitions})
        return cls(
            rules=snapshot.rules,
            shifts=shifts,
            employees=MappingProxyType({e.employee_id: e for e in snapshot.employees}),
            holidays=MappingProxyType({h.date: h for h in snapshot.holidays}),
            employee_overrides=MappingProxyType({(o.employee_id, o.date): o for o in snapshot.employee_overrides}),
            custom_shifts=MappingProxyType({(c.employee_id, c.date): c for c in snapshot.custom_shifts}),
        )

    def employee(self, employee_id: str) -> EmployeeProfile:
        profile = self.employees.get(employee_id)
        if profile is None:
            raise ConfigurationMissing(f"Employee {employee_id} is not in the settings snapshot", employee_id)
        return profile

    def shift(self, shift_id: str, employee_id: str) -> ShiftDefinition:
        if self.shifts is None:
            raise ConfigurationMissing("No shift definitions loaded", employee_id)
        definition = self.shifts.get(shift_id)
        if definition is None:
            raise ConfigurationMissing(f"Shift definition '{shift_id}' not found", employee_id)
        return definition

    def custom_shift(self, employee_id: str, on_date: date) -> CustomShiftAssignment | None:
        return self.custom_shifts.get((employee_id, on_date)) or self.custom_shifts.get((None, on_date))

    def rule_config(self, employee_id: str) -> AttendanceRuleConfig:
        if self.rules is None:
            raise ConfigurationMissing("No attendance rule configuration loaded", employee_id)
        return self.rules


def _weekday(on_date: date) -> str:
    return WEEKDAYS[on_date.weekday()]


def _grace(definition: ShiftDefinition | None) -> int:
    if definition is None or definition.flexible_grace is None:
        return 0
    return definition.flexible_grace


def _from_custom(
    assignment: CustomShiftAssignment, employee_id: str, on_date: date, ctx: OrgContext
) -> EffectiveShift:
    override = assignment.shift_override
    definition = ctx.shift(override.shift_id, employee_id) if override.shift_id else None

    start, end = override.start_time, override.end_time
    if definition is not None:
        day_times = definition.day_overrides.get(_weekday(on_date))
        if start is None:
            start = day_times.start if day_times else definition.start_time
        if end is None:
            end = day_times.end if day_times else definition.end_time

    grace = override.flexible_grace if override.flexible_grace is not None else _grace(definition)
    return EffectiveShift(
        date=on_date,
        start_time=start if override.is_work_day else None,
        end_time=end if override.is_work_day else None,
        is_work_day=override.is_work_day,
        source="CustomShiftAssignment",
        grace_minutes=grace,
        shift_id=override.shift_id,
        description=override.description,
    )


def resolve_effective_shift(employee_id: str, on_date: date, ctx: OrgContext) -> EffectiveShift:
    if ctx.shifts is None:
        raise ConfigurationMissing("No shift definitions loaded", employee_id)
    profile = ctx.employee(employee_id)

    employee_override = ctx.employee_overrides.get((employee_id, on_date))
    assignment = ctx.custom_shift(employee_id, on_date)

    holiday = ctx.holidays.get(on_date)
    if holiday is not None and employee_override is None and assignment is None:
        return EffectiveShift(date=on_date, is_work_day=False, source="Holiday", description=holiday.description)

    if employee_override is not None:
        recurring = ctx.shift(profile.shift_id, employee_id) if profile.shift_id else None
        return EffectiveShift(
            date=on_date,
            start_time=employee_override.start_time if employee_override.is_work_day else None,
            end_time=employee_override.end_time if employee_override.is_work_day else None,
            is_work_day=employee_override.is_work_day,
            source="EmployeeDateOverride",
            grace_minutes=_grace(recurring),
            shift_id=profile.shift_id,
            description=employee_override.description,
        )

    if assignment is not None:
        return _from_custom(assignment, employee_id, on_date, ctx)

    if profile.shift_id is None:
        return EffectiveShift(date=on_date, is_work_day=False, source="Unscheduled")

    definition = ctx.shift(profile.shift_id, employee_id)

    date_override = definition.date_overrides.get(on_date)
    if date_override is not None:
        return EffectiveShift(
            date=on_date,
            start_time=date_override.start if date_override.is_work_day else None,
            end_time=date_override.end if date_override.is_work_day else None,
            is_work_day=date_override.is_work_day,
            source="ScheduleDateOverride",
            grace_minutes=_grace(definition),
            shift_id=definition.id,
            description=date_override.description,
        )

    weekday = _weekday(on_date)
    if weekday in definition.working_days:
        day_times = definition.day_overrides.get(weekday)
        return EffectiveShift(
            date=on_date,
            start_time=day_times.start if day_times else definition.start_time,
            end_time=day_times.end if day_times else definition.end_time,
            is_work_day=True,
            source="RecurringSchedule",
            grace_minutes=_grace(definition),
            shift_id=definition.id,
            description=definition.name,
        )

    return EffectiveShift(
        date=on_date,
        is_work_day=False,
        source="RecurringSchedule",
        shift_id=definition.id,
        description=f"{weekday} is not a working day",
    )
