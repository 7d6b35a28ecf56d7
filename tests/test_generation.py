import datetime as dt
from decimal import Decimal

import pytest

from paydesk.core.errors import DuplicatePeriodError, InvalidStateError, NotFoundError, ValidationError
from paydesk.payroll.engine import LiquidationGenerator
from paydesk.payroll.models import AttendanceSummary, LiquidationState

def assert_consistent(liq):
    assert liq.net_salary == liq.gross_salary - liq.total_deductions
    assert liq.total_deductions == sum(d.amount for d in liq.deductions)

def test_full_month_no_overtime(seeded):
    liq = seeded.generate_liquidation("E1", "2024-03")
    assert liq.state == LiquidationState.PENDING
    assert liq.period == dt.date(2024, 3, 1)
    assert liq.gross_salary == Decimal("1000000.00")
    assert liq.deduction_amount("pension") == Decimal("100000.00")
    assert liq.deduction_amount("health") == Decimal("70000.00")
    assert liq.net_salary == Decimal("830000.00")
    assert_consistent(liq)

def test_partial_month_with_overtime(seeded):
    liq = seeded.generate_liquidation("E2", (2024, 3))
    # 10 days of 30,000 plus 4h overtime at 3,750/h x 1.5
    assert liq.gross_salary == Decimal("322500.00")
    assert liq.total_deductions == Decimal("54825.00")
    assert liq.net_salary == Decimal("267675.00")
    assert_consistent(liq)

def test_no_attendance_gives_zero_liquidation(seeded):
    liq = seeded.generate_liquidation("E4", "2024-03")
    assert liq.gross_salary == 0
    assert liq.net_salary == 0
    assert_consistent(liq)

def test_unknown_employee(seeded):
    with pytest.raises(NotFoundError) as exc:
        seeded.generate_liquidation("NOPE", "2024-03")
    assert exc.value.to_dict()["code"] == "NOT_FOUND"

def test_duplicate_period(seeded):
    first = seeded.generate_liquidation("E1", "2024-03")
    with pytest.raises(DuplicatePeriodError):
        seeded.generate_liquidation("E1", "2024-03")
    assert [l.id for l in seeded.list_liquidations("2024-03", company_id="C1")] == [first.id]

def test_other_period_is_independent(seeded):
    seeded.generate_liquidation("E1", "2024-03")
    april = seeded.generate_liquidation("E1", "2024-04")
    assert april.gross_salary == 0

def test_invalid_month(seeded):
    with pytest.raises(ValidationError):
        seeded.generate_liquidation("E1", "2024-13")
    with pytest.raises(ValidationError):
        seeded.generate_liquidation("E1", "March")

def test_void_frees_period(seeded):
    first = seeded.generate_liquidation("E1", "2024-03")
    seeded.void(first.id, "wrong attendance import")
    second = seeded.generate_liquidation("E1", "2024-03")
    assert second.id != first.id
    assert seeded.get_liquidation(first.id).state == LiquidationState.VOIDED

def test_generate_for_company_collects_failures(seeded):
    seeded.generate_liquidation("E2", "2024-03")
    result = seeded.generate_liquidations_for_company("C1", "2024-03")
    assert sorted(s["employee_id"] for s in result.succeeded) == ["E1", "E4"]
    assert result.failed == [{
        "employee_id": "E2", "employee_name": "Luis Vega",
        "code": "DUPLICATE_PERIOD",
        "reason": "A liquidation already exists for employee E2 in period 2024-03",
    }]
    assert result.processed == 3

def test_recalculate_after_salary_change(seeded):
    liq = seeded.generate_liquidation("E1", "2024-03")
    seeded.employees.apply_patch("E1", {"base_salary": "1200000"})
    updated = seeded.recalculate(liq.id)
    assert updated.id == liq.id
    assert updated.gross_salary == Decimal("1200000.00")
    assert updated.deduction_amount("pension") == Decimal("120000.00")
    assert len(updated.deductions) == 2
    assert_consistent(updated)

def test_recalculate_only_pending(seeded):
    liq = seeded.generate_liquidation("E1", "2024-03")
    seeded.approve(liq.id, "hr-lead")
    with pytest.raises(InvalidStateError) as exc:
        seeded.recalculate(liq.id)
    assert exc.value.current_state == "approved"

def test_effective_hourly_rate(seeded):
    # 1,000,000 / 20 days / 8h
    assert seeded.effective_hourly_rate("E1") == Decimal("6250.00")

def test_compute_gross_custom_policy(uow_factory):
    gen = LiquidationGenerator(uow_factory, shift_hours=Decimal("9"), working_days=30,
                               overtime_multiplier=Decimal("2"))
    summary = AttendanceSummary(days_worked=15, regular_hours=Decimal("135"), overtime_hours=Decimal("3"))
    # 900,000/30 = 30,000/day; /9 = 3,333.33.../h
    assert gen.compute_gross(Decimal("900000"), summary) == Decimal("470000.00")

def test_figures_survive_reread(seeded):
    liq = seeded.generate_liquidation("E2", "2024-03")
    reads = [seeded.get_liquidation(liq.id) for _ in range(3)]
    assert all(r.gross_salary == liq.gross_salary and r.deductions == liq.deductions for r in reads)
