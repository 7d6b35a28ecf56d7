"""
Liquidation approval workflow.

States and the transitions this module performs:

    pending  --approve-->  approved  --pay-->  paid
    pending  --reject--->  rejected
    pending | approved | rejected  --void-->  voided

``paid`` is flipped by the payment processor, inside the same transaction
as the salary and provisional payments. ``rejected`` and ``paid`` are
terminal for the normal flow; ``void`` is the administrative way out of
every unpaid state, and frees the period for a new liquidation.

Every flip is a conditional UPDATE on the expected current state, so when
two callers race only one of them wins and the other gets InvalidStateError.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..core.audit import AuditLogger
from ..core.errors import InvalidStateError, NotFoundError, ValidationError
from ..core.utils import utcnow
from ..integrations.notifications import LIQUIDATION_AVAILABLE, Notifier, safe_notify
from ..payroll.models import Liquidation, LiquidationState, Period

logger = logging.getLogger(__name__)

S = LiquidationState

TRANSITIONS: Dict[str, Tuple[S, ...]] = {
    "approve": (S.PENDING,),
    "reject": (S.PENDING,),
    "void": (S.PENDING, S.APPROVED, S.REJECTED),
    "pay": (S.APPROVED,),
}

TARGETS: Dict[str, S] = {
    "approve": S.APPROVED,
    "reject": S.REJECTED,
    "void": S.VOIDED,
    "pay": S.PAID,
}

def check_transition(liquidation: Liquidation, operation: str):
    """Raise InvalidStateError unless ``operation`` may run from the current state."""
    if liquidation.state not in TRANSITIONS[operation]:
        raise InvalidStateError(liquidation.id, liquidation.state.value, operation)

def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} must not be empty", field=field)
    return value

class LiquidationStateMachine:
    def __init__(
        self,
        uow_factory: Callable,
        notifier: Optional[Notifier] = None,
        audit: Optional[AuditLogger] = None,
        clock: Callable = utcnow,
    ):
        self.uow_factory = uow_factory
        self.notifier = notifier
        self.audit = audit
        self.clock = clock

    def get(self, liquidation_id: str) -> Liquidation:
        with self.uow_factory() as uow:
            liquidation = uow.liquidations.get(liquidation_id)
        if liquidation is None:
            raise NotFoundError("Liquidation", liquidation_id)
        return liquidation

    def _flip(self, liquidation_id: str, operation: str, **fields) -> Tuple[Liquidation, Liquidation]:
        """Run one transition in its own unit of work; returns (before, after)."""
        target = TARGETS[operation]
        with self.uow_factory() as uow:
            before = uow.liquidations.get(liquidation_id)
            if before is None:
                raise NotFoundError("Liquidation", liquidation_id)
            check_transition(before, operation)
            if not uow.liquidations.transition(liquidation_id, before.state, target, **fields):
                # lost a race between the read and the update
                latest = uow.liquidations.get(liquidation_id)
                raise InvalidStateError(liquidation_id, latest.state.value, operation)
            after = uow.liquidations.get(liquidation_id)
        return before, after

    def _record(self, operation: str, before: Liquidation, after: Liquidation, actor: Optional[str] = None, **extra):
        if self.audit is None:
            return
        changes = {"from": before.state.value, "to": after.state.value}
        changes.update(extra)
        self.audit.log_transition("liquidation", after.id, operation, changes, actor=actor)

    def approve(self, liquidation_id: str, approver_id: str) -> Liquidation:
        approver_id = _require_text(approver_id, "approver_id")
        before, after = self._flip(
            liquidation_id, "approve", approved_by=approver_id, approved_at=self.clock(),
        )
        logger.info("Liquidation %s approved by %s", liquidation_id, approver_id)
        self._record("approve", before, after, actor=approver_id)
        safe_notify(self.notifier, after.employee_id, LIQUIDATION_AVAILABLE, {
            "liquidation_id": after.id,
            "period": after.period_label,
            "net_salary": str(after.net_salary),
        })
        return after

    def reject(self, liquidation_id: str, reason: str) -> Liquidation:
        reason = _require_text(reason, "reason")
        before, after = self._flip(
            liquidation_id, "reject", rejection_reason=reason, rejected_at=self.clock(),
        )
        logger.info("Liquidation %s rejected: %s", liquidation_id, reason)
        self._record("reject", before, after, reason=reason)
        return after

    def void(self, liquidation_id: str, reason: str) -> Liquidation:
        reason = _require_text(reason, "reason")
        before, after = self._flip(
            liquidation_id, "void", void_reason=reason, voided_at=self.clock(),
        )
        logger.info("Liquidation %s voided (was %s): %s", liquidation_id, before.state.value, reason)
        self._record("void", before, after, reason=reason)
        return after

    def delete(self, liquidation_id: str) -> Liquidation:
        """Administrative removal of a liquidation with its deductions and payments."""
        with self.uow_factory() as uow:
            liquidation = uow.liquidations.get(liquidation_id)
            if liquidation is None:
                raise NotFoundError("Liquidation", liquidation_id)
            uow.liquidations.delete(liquidation_id)
        logger.warning("Liquidation %s deleted (state %s)", liquidation_id, liquidation.state.value)
        if self.audit is not None:
            self.audit.log_transition(
                "liquidation", liquidation_id, "delete",
                {"from": liquidation.state.value, "employee_id": liquidation.employee_id,
                 "period": liquidation.period_label},
            )
        return liquidation

    def pending_for(self, period=None, company_id: Optional[str] = None) -> List[Liquidation]:
        """Liquidations waiting for a decision."""
        period_start = Period.of(period).start if period is not None else None
        with self.uow_factory() as uow:
            return uow.liquidations.find(period_start=period_start, company_id=company_id, state=S.PENDING)
