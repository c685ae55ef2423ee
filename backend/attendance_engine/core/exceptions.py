class EngineError(Exception):
    """Base class for errors raised by the reconciliation engine."""


class ConfigurationMissing(EngineError):
    """Reference data needed for one employee is absent from the snapshot.

    Fatal for that employee's computation only; the batch pipeline records
    it as an ``EmployeeFailure`` and carries on with the others.
    """

    def __init__(self, message: str, employee_id: str | None = None) -> None:
        super().__init__(message)
        self.employee_id = employee_id


class BatchStructureError(EngineError):
    """The batch itself is unusable (no branch, no period, no records)."""
