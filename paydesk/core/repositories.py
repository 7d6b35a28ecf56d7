"""
Repository layer over the SQLAlchemy session held by a unit of work.
Every method returns plain domain records from paydesk.payroll.models;
ORM rows stay inside this module.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import (
    AttendanceRow, DeductionRow, EmployeeRow, LiquidationRow,
    ProvisionalPaymentRow, SalaryPaymentRow,
)
from ..payroll.models import (
    AttendanceRecord, Deduction, Employee, Liquidation, LiquidationState,
    PaymentMethod, ProvisionalPayment, SalaryPayment,
)
from .errors import DuplicatePeriodError, ValidationError
from .utils import period_label, to_hours

def _to_employee(row: EmployeeRow) -> Employee:
    return Employee(
        id=row.id,
        name=row.name,
        base_salary=row.base_salary,
        company_id=row.company_id,
        national_id=row.national_id,
        position=row.position,
    )

def _to_attendance(row: AttendanceRow) -> AttendanceRecord:
    return AttendanceRecord(
        id=row.id,
        employee_id=row.employee_id,
        work_date=row.work_date,
        entry_time=row.entry_time,
        exit_time=row.exit_time,
        hours_worked=row.hours_worked,
    )

def _to_liquidation(row: LiquidationRow) -> Liquidation:
    return Liquidation(
        id=row.id,
        employee_id=row.employee_id,
        period=row.period,
        state=LiquidationState(row.state),
        gross_salary=row.gross_salary,
        total_deductions=row.total_deductions,
        net_salary=row.net_salary,
        deductions=tuple(Deduction(concept=d.concept, amount=d.amount) for d in row.deductions),
        approved_by=row.approved_by,
        approved_at=row.approved_at,
        rejection_reason=row.rejection_reason,
        rejected_at=row.rejected_at,
        void_reason=row.void_reason,
        voided_at=row.voided_at,
        paid_at=row.paid_at,
        created_at=row.created_at,
    )

def _to_salary_payment(row: SalaryPaymentRow) -> SalaryPayment:
    return SalaryPayment(
        id=row.id,
        liquidation_id=row.liquidation_id,
        bank=row.bank,
        method=PaymentMethod(row.method),
        amount=row.amount,
        paid_on=row.paid_on,
    )

def _to_provisional_payment(row: ProvisionalPaymentRow) -> ProvisionalPayment:
    return ProvisionalPayment(
        id=row.id,
        liquidation_id=row.liquidation_id,
        period_label=row.period_label,
        pension_amount=row.pension_amount,
        health_amount=row.health_amount,
        total=row.total,
        payment_date=row.payment_date,
    )

class BaseRepository:
    """Base repository bound to one session."""

    def __init__(self, session: Session):
        self.session = session

class EmployeesRepository(BaseRepository):
    """Employee directory."""

    def find_by_id(self, employee_id: str) -> Optional[Employee]:
        row = self.session.get(EmployeeRow, employee_id, populate_existing=True)
        return _to_employee(row) if row else None

    def find(self, company_id: Optional[str] = None) -> List[Employee]:
        stmt = select(EmployeeRow).order_by(EmployeeRow.id)
        if company_id is not None:
            stmt = stmt.where(EmployeeRow.company_id == company_id)
        return [_to_employee(r) for r in self.session.scalars(stmt)]

    def add(self, employee: Employee) -> Employee:
        row = EmployeeRow(
            id=employee.id,
            name=employee.name,
            base_salary=employee.base_salary,
            company_id=employee.company_id,
            national_id=employee.national_id,
            position=employee.position,
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError:
            raise ValidationError(f"Employee already exists: {employee.id}", field="id") from None
        return _to_employee(row)

    def update(self, employee_id: str, changes: Dict[str, Any]) -> Optional[Employee]:
        row = self.session.get(EmployeeRow, employee_id)
        if row is None:
            return None
        for name, value in changes.items():
            setattr(row, name, value)
        self.session.flush()
        return _to_employee(row)

class AttendanceRepository(BaseRepository):
    """Attendance store, read side plus the insert used by check-in capture."""

    def find_by_employee_and_date_range(self, employee_id: str, date_from: date, date_to: date) -> List[AttendanceRecord]:
        stmt = (
            select(AttendanceRow)
            .where(
                AttendanceRow.employee_id == employee_id,
                AttendanceRow.work_date >= date_from,
                AttendanceRow.work_date <= date_to,
            )
            .order_by(AttendanceRow.work_date)
        )
        return [_to_attendance(r) for r in self.session.scalars(stmt)]

    def add(self, employee_id: str, work_date: date, hours_worked: Any,
            entry_time: Optional[str] = None, exit_time: Optional[str] = None) -> AttendanceRecord:
        row = AttendanceRow(
            employee_id=employee_id,
            work_date=work_date,
            entry_time=entry_time,
            exit_time=exit_time,
            hours_worked=to_hours(hours_worked),
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError:
            raise ValidationError(
                f"Attendance already recorded for employee {employee_id} on {work_date}", field="work_date"
            ) from None
        return _to_attendance(row)

class DeductionsRepository(BaseRepository):

    def for_liquidation(self, liquidation_id: str) -> List[Deduction]:
        stmt = select(DeductionRow).where(DeductionRow.liquidation_id == liquidation_id).order_by(DeductionRow.id)
        return [Deduction(concept=r.concept, amount=r.amount) for r in self.session.scalars(stmt)]

class LiquidationsRepository(BaseRepository):
    """Liquidations together with their deduction lines."""

    def get(self, liquidation_id: str) -> Optional[Liquidation]:
        row = self.session.get(LiquidationRow, liquidation_id, populate_existing=True)
        return _to_liquidation(row) if row else None

    def find_active(self, employee_id: str, period_start: date) -> Optional[Liquidation]:
        stmt = select(LiquidationRow).where(
            LiquidationRow.employee_id == employee_id,
            LiquidationRow.period == period_start,
            LiquidationRow.state != LiquidationState.VOIDED.value,
        )
        row = self.session.scalars(stmt).first()
        return _to_liquidation(row) if row else None

    def find(self, period_start: Optional[date] = None, employee_id: Optional[str] = None,
             company_id: Optional[str] = None, state: Optional[LiquidationState] = None) -> List[Liquidation]:
        stmt = select(LiquidationRow).order_by(LiquidationRow.period, LiquidationRow.employee_id)
        if period_start is not None:
            stmt = stmt.where(LiquidationRow.period == period_start)
        if employee_id is not None:
            stmt = stmt.where(LiquidationRow.employee_id == employee_id)
        if company_id is not None:
            stmt = stmt.join(EmployeeRow, EmployeeRow.id == LiquidationRow.employee_id).where(
                EmployeeRow.company_id == company_id
            )
        if state is not None:
            stmt = stmt.where(LiquidationRow.state == LiquidationState(state).value)
        return [_to_liquidation(r) for r in self.session.scalars(stmt)]

    def add(self, liquidation: Liquidation) -> Liquidation:
        """Insert a liquidation and its deductions; both or neither."""
        row = LiquidationRow(
            id=liquidation.id,
            employee_id=liquidation.employee_id,
            period=liquidation.period,
            state=liquidation.state.value,
            gross_salary=liquidation.gross_salary,
            total_deductions=liquidation.total_deductions,
            net_salary=liquidation.net_salary,
            created_at=liquidation.created_at,
        )
        row.deductions = [DeductionRow(concept=d.concept, amount=d.amount) for d in liquidation.deductions]
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError:
            raise DuplicatePeriodError(liquidation.employee_id, period_label(liquidation.period)) from None
        return _to_liquidation(row)

    def transition(self, liquidation_id: str, expected: LiquidationState,
                   target: LiquidationState, **fields: Any) -> bool:
        """Conditional state flip; False when the row is no longer in ``expected``."""
        stmt = (
            update(LiquidationRow)
            .where(LiquidationRow.id == liquidation_id, LiquidationRow.state == expected.value)
            .values(state=target.value, **fields)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def replace_financials(self, liquidation_id: str, gross: Decimal, total_deductions: Decimal,
                           net: Decimal, deductions: Sequence[Deduction]) -> bool:
        """Swap figures and the whole deduction set of a pending liquidation."""
        if not self.transition(
            liquidation_id, LiquidationState.PENDING, LiquidationState.PENDING,
            gross_salary=gross, total_deductions=total_deductions, net_salary=net,
        ):
            return False
        row = self.session.get(LiquidationRow, liquidation_id, populate_existing=True)
        row.deductions = [DeductionRow(concept=d.concept, amount=d.amount) for d in deductions]
        self.session.flush()
        return True

    def delete(self, liquidation_id: str) -> bool:
        row = self.session.get(LiquidationRow, liquidation_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

class PaymentsRepository(BaseRepository):
    """Salary payments and provisional (pension/health) remittances."""

    def add_salary_payment(self, liquidation_id: str, bank: str, method: PaymentMethod,
                           amount: Decimal, paid_on: date) -> SalaryPayment:
        row = SalaryPaymentRow(
            liquidation_id=liquidation_id,
            bank=bank,
            method=PaymentMethod(method).value,
            amount=amount,
            paid_on=paid_on,
        )
        self.session.add(row)
        self.session.flush()
        return _to_salary_payment(row)

    def add_provisional_payment(self, liquidation_id: str, period_label: str, pension_amount: Decimal,
                                health_amount: Decimal, total: Decimal, payment_date: date) -> ProvisionalPayment:
        row = ProvisionalPaymentRow(
            liquidation_id=liquidation_id,
            period_label=period_label,
            pension_amount=pension_amount,
            health_amount=health_amount,
            total=total,
            payment_date=payment_date,
        )
        self.session.add(row)
        self.session.flush()
        return _to_provisional_payment(row)

    def salary_payment_for(self, liquidation_id: str) -> Optional[SalaryPayment]:
        stmt = select(SalaryPaymentRow).where(SalaryPaymentRow.liquidation_id == liquidation_id)
        row = self.session.scalars(stmt).first()
        return _to_salary_payment(row) if row else None

    def provisional_payment_for(self, liquidation_id: str) -> Optional[ProvisionalPayment]:
        stmt = select(ProvisionalPaymentRow).where(ProvisionalPaymentRow.liquidation_id == liquidation_id)
        row = self.session.scalars(stmt).first()
        return _to_provisional_payment(row) if row else None

    def salary_payments_for_employee(self, employee_id: str) -> List[SalaryPayment]:
        stmt = (
            select(SalaryPaymentRow)
            .join(LiquidationRow, LiquidationRow.id == SalaryPaymentRow.liquidation_id)
            .where(LiquidationRow.employee_id == employee_id)
            .order_by(SalaryPaymentRow.paid_on, SalaryPaymentRow.id)
        )
        return [_to_salary_payment(r) for r in self.session.scalars(stmt)]

    def provisional_payments_between(self, date_from: date, date_to: date,
                                     company_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Provisional payments dated in [date_from, date_to], joined to liquidation and employee."""
        stmt = (
            select(ProvisionalPaymentRow, LiquidationRow.employee_id, EmployeeRow.name, EmployeeRow.company_id)
            .join(LiquidationRow, LiquidationRow.id == ProvisionalPaymentRow.liquidation_id)
            .join(EmployeeRow, EmployeeRow.id == LiquidationRow.employee_id)
            .where(
                ProvisionalPaymentRow.payment_date >= date_from,
                ProvisionalPaymentRow.payment_date <= date_to,
            )
            .order_by(ProvisionalPaymentRow.payment_date, ProvisionalPaymentRow.id)
        )
        if company_id is not None:
            stmt = stmt.where(EmployeeRow.company_id == company_id)
        rows = []
        for payment, employee_id, employee_name, employee_company in self.session.execute(stmt):
            record = _to_provisional_payment(payment).to_dict()
            record.update({
                "employee_id": employee_id,
                "employee_name": employee_name,
                "company_id": employee_company,
            })
            rows.append(record)
        return rows
