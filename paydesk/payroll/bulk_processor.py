"""
Payroll payment processing: single liquidations and whole payroll runs.

Paying a liquidation does, in one transaction:
 - the conditional approved -> paid flip,
 - the salary payment (amount = net salary),
 - the provisional payment derived from its stored pension/health deductions.

A payroll run pays each liquidation inside its own savepoint of one outer
transaction. Items that fail are rolled back alone and reported; if none
succeeds the whole run is rolled back and BatchFailedError is raised.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..approvals.engine import check_transition
from ..core.audit import AuditLogger
from ..core.errors import BatchFailedError, InvalidStateError, NotFoundError, PayrollError, ValidationError
from ..core.utils import utcnow
from ..integrations.notifications import PAYMENT_COMPLETED, Notifier, safe_notify
from ..reports.provisional import ProvisionalPaymentGenerator
from .models import (
    BatchResult, LiquidationState, PaymentDetails, PaymentOutcome, SalaryPayment,
)

logger = logging.getLogger(__name__)

DetailsInput = Union[PaymentDetails, Dict[str, Any]]

def _failure(liquidation_id: str, error: PayrollError) -> Dict[str, Any]:
    return {"liquidation_id": liquidation_id, "code": error.code, "reason": error.reason}

class PaymentProcessor:
    """Pays approved liquidations."""

    def __init__(
        self,
        uow_factory: Callable,
        provisional_generator: ProvisionalPaymentGenerator,
        notifier: Optional[Notifier] = None,
        audit: Optional[AuditLogger] = None,
        clock: Callable = utcnow,
    ):
        self.uow_factory = uow_factory
        self.provisional_generator = provisional_generator
        self.notifier = notifier
        self.audit = audit
        self.clock = clock

    def _pay_one(self, uow, liquidation_id: str, details: PaymentDetails, paid_on: date) -> PaymentOutcome:
        liquidation = uow.liquidations.get(liquidation_id)
        if liquidation is None:
            raise NotFoundError("Liquidation", liquidation_id)
        check_transition(liquidation, "pay")

        # conditional flip before any insert; the losing payer writes nothing
        if not uow.liquidations.transition(
            liquidation.id, LiquidationState.APPROVED, LiquidationState.PAID, paid_at=self.clock(),
        ):
            latest = uow.liquidations.get(liquidation.id)
            raise InvalidStateError(liquidation.id, latest.state.value, "pay")

        salary_payment = uow.payments.add_salary_payment(
            liquidation_id=liquidation.id,
            bank=details.bank,
            method=details.method,
            amount=liquidation.net_salary,
            paid_on=paid_on,
        )
        provisional_payment = self.provisional_generator.generate(liquidation, uow, paid_on)

        return PaymentOutcome(
            liquidation=uow.liquidations.get(liquidation.id),
            salary_payment=salary_payment,
            provisional_payment=provisional_payment,
        )

    def _after_commit(self, outcome: PaymentOutcome):
        liquidation = outcome.liquidation
        payment = outcome.salary_payment
        if self.audit is not None:
            self.audit.log_transition("liquidation", liquidation.id, "pay", {
                "from": LiquidationState.APPROVED.value,
                "to": liquidation.state.value,
                "amount": payment.amount,
                "method": payment.method.value,
                "bank": payment.bank,
                "provisional_total": outcome.provisional_payment.total,
            })
        safe_notify(self.notifier, liquidation.employee_id, PAYMENT_COMPLETED, {
            "liquidation_id": liquidation.id,
            "period": liquidation.period_label,
            "amount": str(payment.amount),
            "method": payment.method.value,
            "paid_on": payment.paid_on.isoformat(),
        })

    def pay(self, liquidation_id: str, details: DetailsInput) -> PaymentOutcome:
        details = PaymentDetails.parse(details)
        paid_on = details.paid_on or self.clock().date()
        with self.uow_factory() as uow:
            outcome = self._pay_one(uow, liquidation_id, details, paid_on)

        logger.info(
            "Paid liquidation %s: %s by %s via %s",
            liquidation_id, outcome.salary_payment.amount, details.method.value, details.bank,
        )
        self._after_commit(outcome)
        return outcome

    def pay_batch(self, liquidation_ids: Iterable[str], details: DetailsInput) -> BatchResult:
        ids = list(liquidation_ids)
        if not ids:
            raise ValidationError("No liquidations given for payment", field="liquidation_ids")

        try:
            details = PaymentDetails.parse(details)
        except ValidationError as e:
            logger.warning("Payroll run rejected, invalid payment details: %s", e.reason)
            raise BatchFailedError([_failure(lid, e) for lid in ids]) from e

        paid_on = details.paid_on or self.clock().date()
        result = BatchResult()
        outcomes: List[PaymentOutcome] = []

        with self.uow_factory() as uow:
            for liquidation_id in ids:
                try:
                    with uow.savepoint():
                        outcome = self._pay_one(uow, liquidation_id, details, paid_on)
                except PayrollError as e:
                    logger.info("Payroll run item %s failed: %s", liquidation_id, e.reason)
                    result.failed.append(_failure(liquidation_id, e))
                    continue
                outcomes.append(outcome)
                result.succeeded.append({
                    "liquidation_id": liquidation_id,
                    "salary_payment_id": outcome.salary_payment.id,
                    "provisional_payment_id": outcome.provisional_payment.id,
                    "amount": outcome.salary_payment.amount,
                })
                result.total_amount += outcome.salary_payment.amount

            if not result.succeeded:
                raise BatchFailedError(result.failed)

        logger.info(
            "Payroll run: %d paid, %d failed, total %s",
            len(result.succeeded), len(result.failed), result.total_amount,
        )
        for outcome in outcomes:
            self._after_commit(outcome)
        return result

    def salary_payment_for(self, liquidation_id: str) -> Optional[SalaryPayment]:
        with self.uow_factory() as uow:
            return uow.payments.salary_payment_for(liquidation_id)

    def salary_payments_for_employee(self, employee_id: str) -> List[SalaryPayment]:
        with self.uow_factory() as uow:
            return uow.payments.salary_payments_for_employee(employee_id)

    def total_paid(self, employee_id: str) -> Decimal:
        return sum((p.amount for p in self.salary_payments_for_employee(employee_id)), Decimal("0.00"))
