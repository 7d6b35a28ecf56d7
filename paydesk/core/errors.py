"""
Typed exceptions for the payroll liquidation engine.

Every domain error derives from PayrollError and carries a class-level
``code`` that callers can match on instead of parsing messages:

    PayrollError
    +-- NotFoundError          NOT_FOUND
    +-- DuplicatePeriodError   DUPLICATE_PERIOD
    +-- InvalidStateError      INVALID_STATE
    +-- ValidationError        VALIDATION_ERROR
    +-- BatchFailedError       BATCH_FAILED

InfrastructureError is deliberately outside that tree: it wraps storage
faults (connectivity, aborted transactions) raised while a unit of work is
open, so outer layers can tell "caller mistake" apart from "system fault".
"""
from typing import Any, Dict, List, Optional

class PayrollError(Exception):
    """Base class for domain errors."""

    code: str = "PAYROLL_ERROR"

    def __init__(self, message: str):
        self.reason = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "reason": self.reason}

class NotFoundError(PayrollError):
    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")

class DuplicatePeriodError(PayrollError):
    code: str = "DUPLICATE_PERIOD"

    def __init__(self, employee_id: str, period: str):
        self.employee_id = employee_id
        self.period = period
        super().__init__(f"A liquidation already exists for employee {employee_id} in period {period}")

class InvalidStateError(PayrollError):
    code: str = "INVALID_STATE"

    def __init__(self, liquidation_id: str, current_state: str, attempted: str):
        self.liquidation_id = liquidation_id
        self.current_state = current_state
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} liquidation {liquidation_id} (current state: {current_state})"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"current_state": self.current_state, "attempted": self.attempted})
        return data

class ValidationError(PayrollError):
    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

class BatchFailedError(PayrollError):
    code: str = "BATCH_FAILED"

    def __init__(self, failures: List[Dict[str, Any]]):
        self.failures = failures
        super().__init__(f"All {len(failures)} item(s) in the batch failed; nothing was committed")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["failed"] = self.failures
        return data

class InfrastructureError(Exception):
    """Storage or transport fault; not part of the domain taxonomy."""

    code: str = "INFRASTRUCTURE_ERROR"
