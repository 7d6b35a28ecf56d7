import logging
import uuid
from decimal import Decimal
from typing import Callable, Optional

from ..attendance.aggregator import AttendanceAggregator
from ..core.errors import DuplicatePeriodError, InvalidStateError, NotFoundError, PayrollError
from ..core.utils import to_money, utcnow
from ..tax.deductions import DeductionBreakdown, DeductionCalculator
from .models import (
    AttendanceSummary, Deduction, GenerationResult, Liquidation, LiquidationState, Period,
)

logger = logging.getLogger(__name__)

class LiquidationGenerator:
    """Creates pending liquidations from a month of attendance."""

    def __init__(
        self,
        uow_factory: Callable,
        calculator: Optional[DeductionCalculator] = None,
        shift_hours: Decimal = Decimal("8"),
        working_days: int = 20,
        overtime_multiplier: Decimal = Decimal("1.5"),
        clock: Callable = utcnow,
    ):
        if int(working_days) <= 0:
            raise ValueError("working_days must be positive")
        self.uow_factory = uow_factory
        self.calculator = calculator or DeductionCalculator()
        self.shift_hours = Decimal(str(shift_hours))
        self.working_days = Decimal(int(working_days))
        self.overtime_multiplier = Decimal(str(overtime_multiplier))
        self.clock = clock

    def daily_rate(self, base_salary: Decimal) -> Decimal:
        return Decimal(base_salary) / self.working_days

    def hourly_rate(self, base_salary: Decimal) -> Decimal:
        return self.daily_rate(base_salary) / self.shift_hours

    def compute_gross(self, base_salary: Decimal, summary: AttendanceSummary) -> Decimal:
        proportional = self.daily_rate(base_salary) * summary.days_worked
        overtime = self.hourly_rate(base_salary) * self.overtime_multiplier * summary.overtime_hours
        return to_money(proportional + overtime)

    def _figures(self, base_salary: Decimal, summary: AttendanceSummary):
        gross = self.compute_gross(base_salary, summary)
        breakdown: DeductionBreakdown = self.calculator.calculate(gross)
        net = gross - breakdown.total_deductions
        deductions = tuple(Deduction(concept=d.concept, amount=d.amount) for d in breakdown.details)
        return gross, breakdown.total_deductions, net, deductions

    def generate(self, employee_id: str, period) -> Liquidation:
        period = Period.of(period)
        with self.uow_factory() as uow:
            employee = uow.employees.find_by_id(employee_id)
            if employee is None:
                raise NotFoundError("Employee", employee_id)

            if uow.liquidations.find_active(employee_id, period.start) is not None:
                raise DuplicatePeriodError(employee_id, period.label)

            summary = AttendanceAggregator(uow.attendance, self.shift_hours).aggregate(employee_id, period)
            gross, total, net, deductions = self._figures(employee.base_salary, summary)

            liquidation = uow.liquidations.add(Liquidation(
                id=str(uuid.uuid4()),
                employee_id=employee_id,
                period=period.start,
                state=LiquidationState.PENDING,
                gross_salary=gross,
                total_deductions=total,
                net_salary=net,
                deductions=deductions,
                created_at=self.clock(),
            ))

        logger.info(
            "Generated liquidation %s for employee %s period %s: days=%s overtime=%s gross=%s net=%s",
            liquidation.id, employee_id, period.label, summary.days_worked,
            summary.overtime_hours, gross, net,
        )
        return liquidation

    def generate_for_company(self, company_id: str, period) -> GenerationResult:
        """Generate for every employee of a company; per-employee failures are collected."""
        period = Period.of(period)
        with self.uow_factory() as uow:
            employees = uow.employees.find(company_id=company_id)

        results = GenerationResult()
        for employee in employees:
            try:
                liquidation = self.generate(employee.id, period)
                results.succeeded.append({
                    "employee_id": employee.id,
                    "employee_name": employee.name,
                    "liquidation_id": liquidation.id,
                    "net_salary": liquidation.net_salary,
                })
            except PayrollError as e:
                results.failed.append({
                    "employee_id": employee.id,
                    "employee_name": employee.name,
                    "code": e.code,
                    "reason": e.reason,
                })

        logger.info(
            "Company %s period %s: %d liquidation(s) generated, %d failed",
            company_id, period.label, len(results.succeeded), len(results.failed),
        )
        return results

    def recalculate(self, liquidation_id: str) -> Liquidation:
        """Recompute a pending liquidation from current attendance and base salary."""
        with self.uow_factory() as uow:
            current = uow.liquidations.get(liquidation_id)
            if current is None:
                raise NotFoundError("Liquidation", liquidation_id)
            if current.state != LiquidationState.PENDING:
                raise InvalidStateError(liquidation_id, current.state.value, "recalculate")

            employee = uow.employees.find_by_id(current.employee_id)
            if employee is None:
                raise NotFoundError("Employee", current.employee_id)

            period = Period.of(current.period)
            summary = AttendanceAggregator(uow.attendance, self.shift_hours).aggregate(employee.id, period)
            gross, total, net, deductions = self._figures(employee.base_salary, summary)
            if not uow.liquidations.replace_financials(liquidation_id, gross, total, net, deductions):
                latest = uow.liquidations.get(liquidation_id)
                raise InvalidStateError(liquidation_id, latest.state.value, "recalculate")
            updated = uow.liquidations.get(liquidation_id)

        logger.info("Recalculated liquidation %s: gross %s -> %s", liquidation_id, current.gross_salary, gross)
        return updated

    def effective_hourly_rate(self, employee_id: str) -> Decimal:
        with self.uow_factory() as uow:
            employee = uow.employees.find_by_id(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return to_money(self.hourly_rate(employee.base_salary))
