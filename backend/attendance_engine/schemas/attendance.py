from datetime import date, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, computed_field, field_validator

Direction = Literal["in", "out"]

NormalizationReason = Literal[
    "MissingIdentifier",
    "MissingTimestamp",
    "MalformedTimestamp",
    "UnknownDirection",
    "UnresolvedIdentifier",
]

PairingWarningKind = Literal["MissingPunch", "DuplicatePunch", "LabelMismatch"]


class RawPunchRecord(BaseModel):
    """One row of a device export or one structured event object, as received.

    Structured events use ``eventType``/``deviceId``; the event type is treated
    as the device mode and goes through mode inference.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    identifier: str | None = None
    name: str | None = None
    mode: str | None = Field(default=None, validation_alias=AliasChoices("mode", "event_type", "eventType"))
    direction: str | None = Field(default=None, validation_alias=AliasChoices("direction", "in_out", "inOut"))
    timestamp: datetime | str | None = Field(
        default=None, validation_alias=AliasChoices("timestamp", "date_time", "dateTime")
    )
    device_id: str | None = Field(default=None, validation_alias=AliasChoices("device_id", "deviceId"))
    row: int | None = None

    @field_validator("identifier", "name", "mode", "direction", "device_id", mode="before")
    @classmethod
    def coerce_text(cls, v: object) -> str | None:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class PunchEvent(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    timestamp: datetime
    direction: Direction
    mode: str = ""
    device_id: str = ""
    source_identifier: str = ""

    @field_validator("timestamp")
    @classmethod
    def must_be_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.tzinfo.utcoffset(v) is None:
            raise ValueError("timestamp must be timezone-aware")
        return v


class NormalizationError(BaseModel):
    model_config = {"frozen": True}

    reason: NormalizationReason
    message: str
    raw_record: RawPunchRecord


class WorkSession(BaseModel):
    model_config = {"frozen": True}

    employee_id: str
    work_date: date
    entry_time: datetime
    exit_time: datetime | None = None

    @computed_field
    @property
    def duration_minutes(self) -> int:
        """Whole minutes between entry and exit; 0 while the session is open."""
        if self.exit_time is None:
            return 0
        return max(int((self.exit_time - self.entry_time).total_seconds() // 60), 0)

    @property
    def is_open(self) -> bool:
        return self.exit_time is None


class PairingWarning(BaseModel):
    model_config = {"frozen": True}

    kind: PairingWarningKind
    employee_id: str
    work_date: date
    timestamp: datetime
    message: str


class ImportResultResponse(BaseModel):
    filename: str
    total: int
    events: int
    error_count: int
    errors: list[NormalizationError]
    status: Literal["success", "partial", "failed"]
