"""
conftest.py: shared fixtures for the engine tests.

Strategy:
- The engine is stateless, so every fixture is a plain in-memory snapshot;
  no database or running server is needed.
- The reference organization has one day shift (09:00–17:00, Mon–Fri) and
  two employees, E1 (card 101) and E2 (card 102), all in UTC.
- Week used throughout: Monday 2024-03-04 … Sunday 2024-03-10.
- HTTP tests talk to the FastAPI app in-process through ASGITransport.
"""

from __future__ import annotations

from datetime import time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from attendance_engine.main import app
from attendance_engine.schemas.payroll import PayrollBatch
from attendance_engine.schemas.settings import (
    AttendanceRuleConfig,
    EmployeeProfile,
    IdentifierDirectory,
    LateDeductionRule,
    OrgSettingsSnapshot,
    ShiftDefinition,
)
from tests.helpers import MONDAY, UTC, raw


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@pytest.fixture
def tz():
    return UTC


@pytest.fixture
def day_shift() -> ShiftDefinition:
    return ShiftDefinition(
        id="day",
        name="Day shift",
        start_time=time(9, 0),
        end_time=time(17, 0),
        working_days=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
    )


@pytest.fixture
def rules() -> AttendanceRuleConfig:
    """Deductions enabled, Fixed mode: 1.0 per late minute, capped at 90."""
    return AttendanceRuleConfig(
        late_deduction=LateDeductionRule(enabled=True, mode="Fixed", rate_per_minute=1.0),
        overtime_rate=1.5,
    )


@pytest.fixture
def directory() -> IdentifierDirectory:
    return IdentifierDirectory(
        branch_id="BR1",
        identifiers={"101": "E1", "102": "E2"},
        names={"E1": "Asha Verma", "E2": "Ravi Kumar"},
    )


@pytest.fixture
def snapshot(day_shift: ShiftDefinition, rules: AttendanceRuleConfig) -> OrgSettingsSnapshot:
    return OrgSettingsSnapshot(
        timezone="UTC",
        rules=rules,
        shift_definitions=[day_shift],
        employees=[
            EmployeeProfile(employee_id="E1", name="Asha Verma", branch_id="BR1", shift_id="day"),
            EmployeeProfile(employee_id="E2", name="Ravi Kumar", branch_id="BR1", shift_id="day"),
        ],
    )


@pytest.fixture
def batch(snapshot: OrgSettingsSnapshot, directory: IdentifierDirectory) -> PayrollBatch:
    """One working day for both employees; E1 is 10 min late and stays 30 min."""
    return PayrollBatch(
        branch_id="BR1",
        period_start=MONDAY,
        period_end=MONDAY,
        records=[
            raw("101", "2024-03-04 09:10:00", direction="DutyOn"),
            raw("101", "2024-03-04 17:30:00", direction="DutyOff"),
            raw("102", "2024-03-04 08:55:00", direction="DutyOn"),
            raw("102", "2024-03-04 17:00:00", direction="DutyOff"),
        ],
        directory=directory,
        settings=snapshot,
    )


# ---------------------------------------------------------------------------
# HTTP client fixture
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client() -> AsyncClient:
    """Fresh HTTPX async client per test function."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
