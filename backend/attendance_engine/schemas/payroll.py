from datetime import date, time
from typing import Literal

from pydantic import BaseModel

from attendance_engine.schemas.attendance import NormalizationError, PairingWarning, RawPunchRecord, WorkSession
from attendance_engine.schemas.settings import IdentifierDirectory, LeaveRecord, OrgSettingsSnapshot

ShiftSource = Literal[
    "Holiday",
    "EmployeeDateOverride",
    "CustomShiftAssignment",
    "ScheduleDateOverride",
    "RecurringSchedule",
    "Unscheduled",
]

DayStatus = Literal["Present", "Absent", "HalfDay", "Leave", "Holiday", "OffDay", "MissingPunch"]


class EffectiveShift(BaseModel):
    model_config = {"frozen": True}

    date: date
    start_time: time | None = None
    end_time: time | None = None
    is_work_day: bool
    source: ShiftSource
    grace_minutes: int = 0
    shift_id: str | None = None
    description: str = ""


class WageRates(BaseModel):
    model_config = {"frozen": True}

    hourly: float = 1.0
    daily: float = 0.0

    @property
    def per_minute(self) -> float:
        return self.hourly / 60


class DailyAttendanceMetric(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    date: date
    effective_shift: EffectiveShift
    sessions: list[WorkSession]
    worked_minutes: int
    late_minutes: int
    overtime_minutes: int
    early_leave_minutes: int = 0
    status: DayStatus
    deduction_amount: float
    remarks: str = ""
    final_pay: float


class PayrollSummary(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    period_start: date
    period_end: date
    total_worked_hours: float
    total_overtime_hours: float
    total_late_minutes: int
    late_days: int
    total_late_deductions: float
    total_pay: float
    absent_days: int
    half_days: int
    leave_days: int
    missing_punch_days: int
    status_counts: dict[str, int]
    daily_metrics: list[DailyAttendanceMetric]


class PayrollBatch(BaseModel):
    """One uploaded batch plus the reference snapshot it is computed against.

    ``branch_id`` and the period are checked by the pipeline rather than by
    the schema so that a missing value is reported as a structural error.
    """

    branch_id: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    # Month mode, "MM-YYYY"; used when no explicit period is given
    month_year: str | None = None
    timezone: str | None = None
    records: list[RawPunchRecord] = []
    # Raw delimited device export; read only when ``records`` is empty
    file_content: str | None = None
    directory: IdentifierDirectory = IdentifierDirectory()
    settings: OrgSettingsSnapshot = OrgSettingsSnapshot()
    leaves: list[LeaveRecord] = []
    employee_ids: list[str] | None = None


class EmployeeFailure(BaseModel):
    employee_id: str
    reason: Literal["ConfigurationMissing"]
    message: str


class BatchStats(BaseModel):
    total_records: int
    normalized_events: int
    skipped_records: int
    employees_processed: int
    employees_failed: int
    dates_processed: int


class BatchResult(BaseModel):
    branch_id: str
    period_start: date
    period_end: date
    summaries: list[PayrollSummary]
    normalization_errors: list[NormalizationError]
    pairing_warnings: list[PairingWarning]
    failures: list[EmployeeFailure]
    warning_summary: list[str]
    stats: BatchStats
