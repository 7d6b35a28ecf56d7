"""
PayDesk back office: the single entry point the outer layers (HTTP
controllers, CLI scripts, schedulers) call into.

    from paydesk.backoffice import PayrollBackOffice

    office = PayrollBackOffice.from_settings()
    liq = office.generate_liquidation("E1", "2024-03")
    office.approve(liq.id, approver_id="hr-lead")
    office.pay(liq.id, {"method": "transfer", "bank": "First Bank"})
"""
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy.engine import Engine

from .approvals.engine import LiquidationStateMachine
from .attendance.aggregator import AttendanceAggregator
from .core.audit import AuditLogger
from .core.config import Settings, settings
from .core.errors import NotFoundError
from .core.utils import setup_logging, utcnow
from .db.session import init_db, make_engine
from .db.unit_of_work import unit_of_work_factory
from .employees.manager import EmployeeManager
from .integrations.notifications import Notifier, build_notifier
from .payroll.bulk_processor import PaymentProcessor
from .payroll.engine import LiquidationGenerator
from .payroll.models import (
    AttendanceDetail, BatchResult, GenerationResult, Liquidation, PaymentDetails, PaymentOutcome, Period,
    SalaryPayment,
)
from .reports.provisional import ProvisionalPaymentGenerator, ProvisionalReport
from .tax.deductions import DeductionCalculator

logger = logging.getLogger(__name__)

class PayrollBackOffice:
    def __init__(
        self,
        uow_factory: Callable,
        calculator: Optional[DeductionCalculator] = None,
        notifier: Optional[Notifier] = None,
        audit: Optional[AuditLogger] = None,
        shift_hours: Decimal = Decimal("8"),
        working_days: int = 20,
        overtime_multiplier: Decimal = Decimal("1.5"),
        pension_concept: str = "pension",
        health_concept: str = "health",
        clock: Callable = utcnow,
    ):
        self.uow_factory = uow_factory
        self.employees = EmployeeManager(uow_factory)
        self.generator = LiquidationGenerator(
            uow_factory,
            calculator=calculator or DeductionCalculator(
                DeductionCalculator.statutory_rules(pension_concept, health_concept)
            ),
            shift_hours=shift_hours,
            working_days=working_days,
            overtime_multiplier=overtime_multiplier,
            clock=clock,
        )
        self.state_machine = LiquidationStateMachine(uow_factory, notifier=notifier, audit=audit, clock=clock)
        self.provisional = ProvisionalPaymentGenerator(
            uow_factory, pension_concept=pension_concept, health_concept=health_concept, clock=clock,
        )
        self.payments = PaymentProcessor(
            uow_factory, self.provisional, notifier=notifier, audit=audit, clock=clock,
        )
        self.audit = audit

    @classmethod
    def from_settings(cls, cfg: Settings = settings, engine: Optional[Engine] = None,
                      notifier: Optional[Notifier] = None, create_schema: bool = True) -> "PayrollBackOffice":
        """Wire every component from configuration."""
        setup_logging(log_level=cfg.LOG_LEVEL, log_path=cfg.LOG_PATH)
        engine = engine or make_engine(cfg.DB_URL)
        if create_schema:
            init_db(engine)
        office = cls(
            unit_of_work_factory(engine),
            calculator=DeductionCalculator.from_settings(cfg),
            notifier=notifier or build_notifier(cfg.NOTIFY_WEBHOOK_URL, timeout=cfg.NOTIFY_TIMEOUT_SECONDS),
            audit=AuditLogger(cfg.AUDIT_LOG_PATH),
            shift_hours=cfg.STANDARD_SHIFT_HOURS,
            working_days=cfg.STANDARD_WORKING_DAYS,
            overtime_multiplier=cfg.OVERTIME_MULTIPLIER,
            pension_concept=cfg.PENSION_CONCEPT,
            health_concept=cfg.HEALTH_CONCEPT,
        )
        logger.info("%s back office ready on %s", cfg.APP_NAME, engine.url.render_as_string(hide_password=True))
        return office

    # Liquidations

    def generate_liquidation(self, employee_id: str, period) -> Liquidation:
        return self.generator.generate(employee_id, period)

    def generate_liquidations_for_company(self, company_id: str, period) -> GenerationResult:
        return self.generator.generate_for_company(company_id, period)

    def recalculate(self, liquidation_id: str) -> Liquidation:
        return self.generator.recalculate(liquidation_id)

    def approve(self, liquidation_id: str, approver_id: str) -> Liquidation:
        return self.state_machine.approve(liquidation_id, approver_id)

    def reject(self, liquidation_id: str, reason: str) -> Liquidation:
        return self.state_machine.reject(liquidation_id, reason)

    def void(self, liquidation_id: str, reason: str) -> Liquidation:
        return self.state_machine.void(liquidation_id, reason)

    def delete_liquidation(self, liquidation_id: str) -> Liquidation:
        return self.state_machine.delete(liquidation_id)

    def get_liquidation(self, liquidation_id: str) -> Liquidation:
        return self.state_machine.get(liquidation_id)

    def list_liquidations(self, period=None, company_id: Optional[str] = None,
                          employee_id: Optional[str] = None, state=None) -> List[Liquidation]:
        period_start = Period.of(period).start if period is not None else None
        with self.uow_factory() as uow:
            return uow.liquidations.find(
                period_start=period_start, employee_id=employee_id, company_id=company_id, state=state,
            )

    def liquidation_with_employee(self, liquidation_id: str) -> Dict[str, Any]:
        """Liquidation plus the employee fields a payslip needs."""
        liquidation = self.get_liquidation(liquidation_id)
        try:
            employee = self.employees.get(liquidation.employee_id)
        except NotFoundError:
            employee = None
        data = liquidation.to_dict()
        data["period_label"] = liquidation.period_label
        data["employee"] = employee.to_dict() if employee else None
        return data

    # Payments

    def pay(self, liquidation_id: str, details: Union[PaymentDetails, Dict[str, Any]]) -> PaymentOutcome:
        return self.payments.pay(liquidation_id, details)

    def pay_batch(self, liquidation_ids: Iterable[str],
                  details: Union[PaymentDetails, Dict[str, Any]]) -> BatchResult:
        return self.payments.pay_batch(liquidation_ids, details)

    def salary_payments_for_employee(self, employee_id: str) -> List[SalaryPayment]:
        return self.payments.salary_payments_for_employee(employee_id)

    # Attendance

    def attendance_detail(self, employee_id: str, period) -> AttendanceDetail:
        with self.uow_factory() as uow:
            if uow.employees.find_by_id(employee_id) is None:
                raise NotFoundError("Employee", employee_id)
            return AttendanceAggregator(uow.attendance, self.generator.shift_hours).detail(employee_id, period)

    # Reports

    def provisional_report(self, period, company_id: Optional[str] = None) -> ProvisionalReport:
        period = Period.of(period)
        return self.provisional.report_for_period(period.year, period.month, company_id=company_id)

    def export_provisional_report(self, period, path: Union[str, Path], company_id: Optional[str] = None) -> Path:
        period = Period.of(period)
        return self.provisional.export_report(period.year, period.month, path, company_id=company_id)

    def effective_hourly_rate(self, employee_id: str) -> Decimal:
        return self.generator.effective_hourly_rate(employee_id)

    def history(self, liquidation_id: str) -> List[Dict[str, Any]]:
        if self.audit is None:
            return []
        return self.audit.get_change_history("liquidation", liquidation_id)
