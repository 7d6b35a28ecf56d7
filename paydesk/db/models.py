from sqlalchemy import (
    Column, String, Integer, Numeric, ForeignKey, Date, DateTime, Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from paydesk.core.utils import utcnow
from paydesk.db.session import Base

MONEY = Numeric(14, 2)

class EmployeeRow(Base):
    __tablename__ = "employees"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    national_id = Column(String, nullable=True, index=True)
    position = Column(String, nullable=True)
    company_id = Column(String, nullable=True, index=True)
    base_salary = Column(MONEY, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class AttendanceRow(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        # one record per employee per calendar day
        UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False, index=True)
    work_date = Column(Date, nullable=False)
    entry_time = Column(String, nullable=True)
    exit_time = Column(String, nullable=True)
    hours_worked = Column(Numeric(5, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

class LiquidationRow(Base):
    __tablename__ = "liquidations"
    __table_args__ = (
        # at most one non-voided liquidation per employee and period
        Index(
            "uq_liquidation_employee_period_active",
            "employee_id", "period",
            unique=True,
            sqlite_where=text("state != 'voided'"),
            postgresql_where=text("state != 'voided'"),
        ),
    )
    id = Column(String, primary_key=True)
    employee_id = Column(String, ForeignKey("employees.id"), nullable=False, index=True)
    period = Column(Date, nullable=False, index=True)
    state = Column(String, nullable=False, default="pending")
    gross_salary = Column(MONEY, nullable=False)
    total_deductions = Column(MONEY, nullable=False, default=0)
    net_salary = Column(MONEY, nullable=False)
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    void_reason = Column(String, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    deductions = relationship(
        "DeductionRow", back_populates="liquidation",
        cascade="all, delete-orphan", order_by="DeductionRow.id",
    )
    salary_payment = relationship("SalaryPaymentRow", uselist=False, cascade="all, delete-orphan")
    provisional_payment = relationship("ProvisionalPaymentRow", uselist=False, cascade="all, delete-orphan")

class DeductionRow(Base):
    __tablename__ = "deductions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    liquidation_id = Column(String, ForeignKey("liquidations.id"), nullable=False, index=True)
    concept = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)

    liquidation = relationship("LiquidationRow", back_populates="deductions")

class SalaryPaymentRow(Base):
    __tablename__ = "salary_payments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    liquidation_id = Column(String, ForeignKey("liquidations.id"), nullable=False, unique=True)
    bank = Column(String, nullable=False)
    method = Column(String, nullable=False)  # 'check' / 'transfer'
    amount = Column(MONEY, nullable=False)
    paid_on = Column(Date, nullable=False)
    created_at = Column(DateTime, default=utcnow)

class ProvisionalPaymentRow(Base):
    __tablename__ = "provisional_payments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    liquidation_id = Column(String, ForeignKey("liquidations.id"), nullable=False, unique=True)
    period_label = Column(String, nullable=False)
    pension_amount = Column(MONEY, nullable=False, default=0)
    health_amount = Column(MONEY, nullable=False, default=0)
    total = Column(MONEY, nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
