import dataclasses
import datetime as dt
from decimal import Decimal

import pytest

from paydesk.core.errors import BatchFailedError, InvalidStateError, NotFoundError, ValidationError
from paydesk.core.repositories import LiquidationsRepository
from paydesk.payroll.models import LiquidationState, PaymentDetails, PaymentMethod

from conftest import approved

TRANSFER = {"method": "transfer", "bank": "First Bank", "date": "2024-04-05"}

def test_pay_creates_salary_and_provisional(seeded, uow_factory):
    liq = approved(seeded, "E1")
    out = seeded.pay(liq.id, TRANSFER)

    assert out.liquidation.state == LiquidationState.PAID
    assert out.liquidation.paid_at is not None
    assert out.salary_payment.amount == liq.net_salary == Decimal("830000.00")
    assert out.salary_payment.method == PaymentMethod.TRANSFER
    assert out.salary_payment.paid_on == dt.date(2024, 4, 5)
    prov = out.provisional_payment
    assert prov.pension_amount == Decimal("100000.00")
    assert prov.health_amount == Decimal("70000.00")
    assert prov.pension_amount + prov.health_amount == prov.total
    # labelled by the payment date, not the liquidation period
    assert prov.period_label == "2024-04"

    with uow_factory() as uow:
        assert uow.payments.salary_payment_for(liq.id).id == out.salary_payment.id
        assert uow.payments.provisional_payment_for(liq.id).id == prov.id

def test_pay_pending_is_refused(seeded, uow_factory):
    liq = seeded.generate_liquidation("E1", "2024-03")
    with pytest.raises(InvalidStateError) as exc:
        seeded.pay(liq.id, TRANSFER)
    assert exc.value.current_state == "pending"
    with uow_factory() as uow:
        assert uow.payments.salary_payment_for(liq.id) is None
        assert uow.payments.provisional_payment_for(liq.id) is None

def test_pay_twice_is_refused(seeded):
    liq = approved(seeded, "E1")
    seeded.pay(liq.id, TRANSFER)
    with pytest.raises(InvalidStateError):
        seeded.pay(liq.id, TRANSFER)
    assert len(seeded.salary_payments_for_employee("E1")) == 1

@pytest.mark.parametrize("details", [
    {"method": "cash", "bank": "First Bank"},
    {"method": "transfer", "bank": "  "},
    {"method": "transfer"},
    {},
])
def test_pay_with_bad_details(seeded, details):
    liq = approved(seeded, "E1")
    with pytest.raises(ValidationError):
        seeded.pay(liq.id, details)
    assert seeded.get_liquidation(liq.id).state == LiquidationState.APPROVED

def test_pay_unknown(seeded):
    with pytest.raises(NotFoundError):
        seeded.pay("missing", TRANSFER)

def test_zero_liquidation_cannot_be_paid(seeded, uow_factory):
    liq = approved(seeded, "E4")
    with pytest.raises(ValidationError) as exc:
        seeded.pay(liq.id, TRANSFER)
    assert exc.value.field == "deductions"
    with uow_factory() as uow:
        assert uow.payments.salary_payment_for(liq.id) is None
    assert seeded.get_liquidation(liq.id).state == LiquidationState.APPROVED

def test_pay_notifies_after_commit(seeded, notifier):
    liq = approved(seeded, "E1")
    seeded.pay(liq.id, TRANSFER)
    assert notifier.events[-1] == ("E1", "payment_completed", {
        "liquidation_id": liq.id, "period": "2024-03", "amount": "830000.00",
        "method": "transfer", "paid_on": "2024-04-05",
    })

def test_batch_with_one_unapproved_item(seeded):
    l1 = approved(seeded, "E1")
    l2 = seeded.generate_liquidation("E2", "2024-03")
    l3 = approved(seeded, "E3")

    result = seeded.pay_batch([l1.id, l2.id, l3.id], TRANSFER)

    assert [s["liquidation_id"] for s in result.succeeded] == [l1.id, l3.id]
    assert len(result.failed) == 1
    assert result.failed[0]["liquidation_id"] == l2.id
    assert result.failed[0]["code"] == "INVALID_STATE"
    assert result.total_amount == Decimal("1494000.00")
    assert result.processed == 3
    assert seeded.get_liquidation(l1.id).state == LiquidationState.PAID
    assert seeded.get_liquidation(l3.id).state == LiquidationState.PAID
    assert seeded.get_liquidation(l2.id).state == LiquidationState.PENDING

    d = result.to_dict()
    assert (d["processed"], d["succeeded_count"], d["failed_count"]) == (3, 2, 1)

def test_batch_single_invalid_item_commits_nothing(seeded, uow_factory, notifier):
    l4 = approved(seeded, "E4")
    events_before = list(notifier.events)
    with pytest.raises(BatchFailedError) as exc:
        seeded.pay_batch([l4.id], TRANSFER)
    assert exc.value.failures == [{
        "liquidation_id": l4.id, "code": "VALIDATION_ERROR", "reason": exc.value.failures[0]["reason"],
    }]
    assert exc.value.to_dict()["code"] == "BATCH_FAILED"
    assert seeded.get_liquidation(l4.id).state == LiquidationState.APPROVED
    with uow_factory() as uow:
        assert uow.payments.salary_payment_for(l4.id) is None
    assert notifier.events == events_before

def test_batch_where_every_item_fails(seeded):
    l1 = seeded.generate_liquidation("E1", "2024-03")
    with pytest.raises(BatchFailedError) as exc:
        seeded.pay_batch([l1.id, "missing"], TRANSFER)
    assert [f["code"] for f in exc.value.failures] == ["INVALID_STATE", "NOT_FOUND"]
    assert seeded.salary_payments_for_employee("E1") == []

def test_batch_with_malformed_details_fails_every_item(seeded):
    l1 = approved(seeded, "E1")
    l3 = approved(seeded, "E3")
    with pytest.raises(BatchFailedError) as exc:
        seeded.pay_batch([l1.id, l3.id], {"method": "cash", "bank": "First Bank"})
    assert [f["liquidation_id"] for f in exc.value.failures] == [l1.id, l3.id]
    assert {f["code"] for f in exc.value.failures} == {"VALIDATION_ERROR"}
    assert seeded.get_liquidation(l1.id).state == LiquidationState.APPROVED

def test_batch_duplicate_id_paid_once(seeded):
    l1 = approved(seeded, "E1")
    result = seeded.pay_batch([l1.id, l1.id], PaymentDetails(method="check", bank="First Bank"))
    assert len(result.succeeded) == 1
    assert result.failed[0]["code"] == "INVALID_STATE"
    assert result.total_amount == Decimal("830000.00")
    assert len(seeded.salary_payments_for_employee("E1")) == 1

def test_empty_batch(seeded):
    with pytest.raises(ValidationError):
        seeded.pay_batch([], TRANSFER)

def test_paid_figures_are_stable(seeded):
    liq = approved(seeded, "E2")
    seeded.pay(liq.id, TRANSFER)
    seeded.employees.apply_patch("E2", {"base_salary": 999999})
    for _ in range(3):
        again = seeded.get_liquidation(liq.id)
        assert again.gross_salary == liq.gross_salary
        assert again.net_salary == liq.net_salary
        assert again.deductions == liq.deductions

def serve_stale_first_read(monkeypatch, stale):
    """The first repository read returns ``stale``; later reads hit the database."""
    real_get = LiquidationsRepository.get
    calls = []

    def get(self, liquidation_id):
        calls.append(liquidation_id)
        return stale if len(calls) == 1 else real_get(self, liquidation_id)

    monkeypatch.setattr(LiquidationsRepository, "get", get)

def test_pay_lost_race_reports_invalid_state(seeded, monkeypatch):
    liq = approved(seeded, "E1")
    seeded.pay(liq.id, TRANSFER)
    serve_stale_first_read(monkeypatch, dataclasses.replace(seeded.get_liquidation(liq.id),
                                                            state=LiquidationState.APPROVED))
    with pytest.raises(InvalidStateError) as exc:
        seeded.pay(liq.id, TRANSFER)
    assert exc.value.current_state == "paid"
    monkeypatch.undo()
    assert len(seeded.salary_payments_for_employee("E1")) == 1

def test_batch_lost_race_keeps_the_rest_of_the_run(seeded, monkeypatch):
    l1 = approved(seeded, "E1")
    l3 = approved(seeded, "E3")
    seeded.pay(l1.id, TRANSFER)
    serve_stale_first_read(monkeypatch, dataclasses.replace(seeded.get_liquidation(l1.id),
                                                            state=LiquidationState.APPROVED))
    result = seeded.pay_batch([l1.id, l3.id], TRANSFER)
    monkeypatch.undo()
    assert [s["liquidation_id"] for s in result.succeeded] == [l3.id]
    assert result.failed == [{
        "liquidation_id": l1.id,
        "code": "INVALID_STATE",
        "reason": f"Cannot pay liquidation {l1.id} (current state: paid)",
    }]
    assert seeded.get_liquidation(l3.id).state == LiquidationState.PAID
    assert len(seeded.salary_payments_for_employee("E1")) == 1
