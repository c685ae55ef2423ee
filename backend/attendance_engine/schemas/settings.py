"""
Organization settings snapshot consumed by the engine.

These shapes are owned by the settings/storage side of the system; the engine
only reads them.  Every model is frozen so a snapshot cannot change while a
batch is being computed.
"""

from datetime import date, time
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

WEEKDAYS: tuple[str, ...] = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _title_weekday(v: object) -> object:
    return v.strip().title() if isinstance(v, str) else v


class ShiftTimes(BaseModel):
    model_config = {"frozen": True}

    start: time
    end: time


class ShiftDateOverride(BaseModel):
    model_config = {"frozen": True}

    start: time | None = None
    end: time | None = None
    is_work_day: bool = True
    description: str = ""

    @model_validator(mode="after")
    def times_for_work_day(self) -> "ShiftDateOverride":
        if self.is_work_day and (self.start is None or self.end is None):
            raise ValueError("a working override needs both start and end")
        return self


class ShiftDefinition(BaseModel):
    model_config = {"frozen": True}

    id: str
    name: str = ""
    start_time: time
    end_time: time
    working_days: frozenset[Weekday] = frozenset(WEEKDAYS[:5])
    # Present only when flexible time is enabled for the shift
    flexible_grace: int | None = Field(default=None, ge=0)
    date_overrides: dict[date, ShiftDateOverride] = {}
    day_overrides: dict[Weekday, ShiftTimes] = {}

    @field_validator("working_days", mode="before")
    @classmethod
    def normalize_days(cls, v: object) -> object:
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(_title_weekday(d) for d in v)
        return v

    @field_validator("day_overrides", mode="before")
    @classmethod
    def normalize_day_keys(cls, v: object) -> object:
        if isinstance(v, dict):
            return {_title_weekday(k): val for k, val in v.items()}
        return v


class ShiftOverride(BaseModel):
    """Shift applied by a one-off assignment: a reference or explicit times."""

    model_config = {"frozen": True}

    shift_id: str | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_work_day: bool = True
    flexible_grace: int | None = Field(default=None, ge=0)
    description: str = ""

    @model_validator(mode="after")
    def reference_or_times(self) -> "ShiftOverride":
        if not self.is_work_day or self.shift_id:
            return self
        if self.start_time is None or self.end_time is None:
            raise ValueError("shift_override needs shift_id or both start_time and end_time")
        return self


class CustomShiftAssignment(BaseModel):
    model_config = {"frozen": True}

    # None applies the assignment to every employee of the branch
    employee_id: str | None = None
    date: date
    shift_override: ShiftOverride


class EmployeeDateOverride(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    date: date
    start_time: time | None = None
    end_time: time | None = None
    is_work_day: bool = True
    description: str = ""

    @model_validator(mode="after")
    def times_for_work_day(self) -> "EmployeeDateOverride":
        if self.is_work_day and (self.start_time is None or self.end_time is None):
            raise ValueError("a working override needs both start_time and end_time")
        return self


class Holiday(BaseModel):
    model_config = {"frozen": True}

    id: str
    date: date
    description: str = ""


class LeaveRecord(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    date: date
    status: Literal["Pending", "Sanctioned", "Rejected"]
    leave_type: str = ""


class LateDeductionRule(BaseModel):
    model_config = {"frozen": True}

    enabled: bool = False
    mode: Literal["Percentage", "Fixed"] = "Percentage"
    # Percentage mode: percent of the per-minute wage; Fixed mode: amount per minute
    rate_per_minute: float = Field(default=0.5, ge=0)
    max_deduction_minutes: int = Field(default=90, ge=0)
    half_day_threshold_minutes: int | None = Field(default=120, ge=0)
    absent_threshold_minutes: int | None = Field(default=240, ge=0)
    penalize_early_leave: bool = False


class LeaveRules(BaseModel):
    model_config = {"frozen": True}

    charge_absence: bool = False
    unsanctioned_multiplier: float = Field(default=2.0, ge=0)


class AttendanceRuleConfig(BaseModel):
    model_config = {"frozen": True}

    late_deduction: LateDeductionRule = LateDeductionRule()
    overtime_rate: float = Field(default=1.0, ge=0)
    leave_rules: LeaveRules = LeaveRules()


class EmployeeProfile(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    name: str = ""
    branch_id: str | None = None
    shift_id: str | None = None
    # None: 1.0, or derived from monthly_salary when that is set
    hourly_rate: float | None = Field(default=None, ge=0)
    monthly_salary: float | None = Field(default=None, ge=0)


class IdentifierDirectory(BaseModel):
    """Biometric/card id → employee id, for one branch."""

    model_config = {"frozen": True}

    branch_id: str | None = None
    identifiers: dict[str, str] = {}
    # employee id → display name, used only by the optional fuzzy fallback
    names: dict[str, str] = {}


class OrgSettingsSnapshot(BaseModel):
    model_config = {"frozen": True}

    timezone: str | None = None
    rules: AttendanceRuleConfig | None = None
    shift_definitions: list[ShiftDefinition] | None = None
    holidays: list[Holiday] = []
    custom_shifts: list[CustomShiftAssignment] = []
    employee_overrides: list[EmployeeDateOverride] = []
    employees: list[EmployeeProfile] = []
