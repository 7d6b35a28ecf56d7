"""
Plain domain records returned by repositories and services.

Rows never leave the repository layer; callers get these frozen
dataclasses, which serialize with ``to_dict()``.
"""
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.errors import ValidationError
from ..core.utils import month_bounds

class LiquidationState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    VOIDED = "voided"

class PaymentMethod(str, Enum):
    CHECK = "check"
    TRANSFER = "transfer"

def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value

class Record:
    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))

@dataclass(frozen=True)
class Period(Record):
    """A calendar month."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= int(self.month) <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {self.month}", field="month")
        if not 1900 <= int(self.year) <= 9999:
            raise ValidationError(f"Year out of range: {self.year}", field="year")

    @classmethod
    def of(cls, value: Union["Period", date, str, Tuple[int, int]]) -> "Period":
        if isinstance(value, Period):
            return value
        if isinstance(value, date):
            return cls(value.year, value.month)
        if isinstance(value, str):
            try:
                year_s, month_s = value.strip().split("-")[:2]
                return cls(int(year_s), int(month_s))
            except ValueError:
                raise ValidationError(f"Period must look like YYYY-MM, got {value!r}", field="period")
        year, month = value
        return cls(int(year), int(month))

    @property
    def start(self) -> date:
        return month_bounds(self.year, self.month)[0]

    @property
    def end(self) -> date:
        return month_bounds(self.year, self.month)[1]

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.label

@dataclass(frozen=True)
class Employee(Record):
    id: str
    name: str
    base_salary: Decimal
    company_id: Optional[str] = None
    national_id: Optional[str] = None
    position: Optional[str] = None

@dataclass(frozen=True)
class AttendanceRecord(Record):
    id: int
    employee_id: str
    work_date: date
    entry_time: Optional[str]
    exit_time: Optional[str]
    hours_worked: Decimal

@dataclass(frozen=True)
class AttendanceSummary(Record):
    days_worked: int = 0
    regular_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")

@dataclass(frozen=True)
class AttendanceDay(Record):
    work_date: date
    weekday: str
    is_workday: bool
    attended: bool
    hours_worked: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    entry_time: Optional[str] = None
    exit_time: Optional[str] = None

@dataclass(frozen=True)
class AttendanceDetail(Record):
    """Day-by-day view of one employee's month."""
    employee_id: str
    period: str
    days_in_month: int
    days_worked: int = 0
    complete_days: int = 0
    incomplete_days: int = 0
    absent_days: int = 0
    overtime_days: int = 0
    total_hours: Decimal = Decimal("0")
    regular_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    days: Tuple[AttendanceDay, ...] = field(default_factory=tuple)

@dataclass(frozen=True)
class Deduction(Record):
    concept: str
    amount: Decimal

@dataclass(frozen=True)
class Liquidation(Record):
    id: str
    employee_id: str
    period: date
    state: LiquidationState
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    deductions: Tuple[Deduction, ...] = ()
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejected_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def period_label(self) -> str:
        return Period.of(self.period).label

    def deduction_amount(self, concept: str) -> Decimal:
        return sum((d.amount for d in self.deductions if d.concept == concept), Decimal("0"))

@dataclass(frozen=True)
class SalaryPayment(Record):
    id: int
    liquidation_id: str
    bank: str
    method: PaymentMethod
    amount: Decimal
    paid_on: date

@dataclass(frozen=True)
class ProvisionalPayment(Record):
    id: int
    liquidation_id: str
    period_label: str
    pension_amount: Decimal
    health_amount: Decimal
    total: Decimal
    payment_date: date

class PaymentDetails(BaseModel):
    """How a liquidation (or a whole payroll run) is paid out."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    method: PaymentMethod
    bank: str
    paid_on: Optional[date] = Field(default=None, alias="date")

    @field_validator("bank")
    @classmethod
    def _bank_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("bank must not be empty")
        return v

    @classmethod
    def parse(cls, data: Union["PaymentDetails", Dict[str, Any]]) -> "PaymentDetails":
        if isinstance(data, PaymentDetails):
            return data
        try:
            return cls.model_validate(data or {})
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError(f"Invalid payment details: {loc}: {first.get('msg')}", field=loc) from None

@dataclass(frozen=True)
class PaymentOutcome(Record):
    liquidation: Liquidation
    salary_payment: SalaryPayment
    provisional_payment: ProvisionalPayment

@dataclass
class BatchResult(Record):
    succeeded: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "processed": self.processed,
            "succeeded_count": len(self.succeeded),
            "failed_count": len(self.failed),
        })
        return data

@dataclass
class GenerationResult(Record):
    succeeded: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed)
