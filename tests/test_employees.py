import datetime as dt
from decimal import Decimal

import pandas as pd
import pytest

from paydesk.core.errors import NotFoundError, ValidationError
from paydesk.employees.manager import EmployeePatch, hours_between

def test_register_and_list(office):
    office.employees.register("E1", " Ana Rojas ", "1000000", company_id="C1")
    office.employees.register("E2", "Luis Vega", 600000, company_id="C2")
    emp = office.employees.get("E1")
    assert emp.name == "Ana Rojas"
    assert emp.base_salary == Decimal("1000000.00")
    assert [e.id for e in office.employees.list_for_company("C1")] == ["E1"]
    assert len(office.employees.list_for_company()) == 2

@pytest.mark.parametrize("kwargs", [
    {"employee_id": "", "name": "X", "base_salary": 1},
    {"employee_id": "E5", "name": "  ", "base_salary": 1},
    {"employee_id": "E5", "name": "X", "base_salary": -1},
    {"employee_id": "E5", "name": "X", "base_salary": "a lot"},
])
def test_register_validation(office, kwargs):
    with pytest.raises(ValidationError):
        office.employees.register(**kwargs)

def test_patch_changes_only_given_fields(seeded):
    emp = seeded.employees.apply_patch("E1", EmployeePatch(position="Lead Engineer"))
    assert emp.position == "Lead Engineer"
    assert emp.name == "Ana Rojas"
    assert emp.base_salary == Decimal("1000000.00")

def test_patch_rejects_bad_values_up_front(seeded):
    for patch in [{"base_salary": -5}, {"name": ""}, {"company_id": "C9"}, {"base_salary": "abc"}]:
        with pytest.raises(ValidationError):
            seeded.employees.apply_patch("E1", patch)
    assert seeded.employees.get("E1").base_salary == Decimal("1000000.00")

def test_patch_unknown_employee(seeded):
    with pytest.raises(NotFoundError):
        seeded.employees.apply_patch("NOPE", {"name": "Ghost"})
    with pytest.raises(NotFoundError):
        seeded.employees.apply_patch("NOPE", {})

def test_empty_patch_is_noop(seeded):
    assert seeded.employees.apply_patch("E2", {}) == seeded.employees.get("E2")

def test_hours_between():
    assert hours_between("09:00", "17:30") == Decimal("8.50")
    assert hours_between("08:00:00", "08:45:00") == Decimal("0.75")
    with pytest.raises(ValidationError):
        hours_between("18:00", "09:00")
    with pytest.raises(ValidationError):
        hours_between("9am", "5pm")

def test_attendance_hours_out_of_range(seeded):
    with pytest.raises(ValidationError):
        seeded.employees.record_attendance("E4", dt.date(2024, 3, 4), Decimal("25"))
    with pytest.raises(ValidationError):
        seeded.employees.record_attendance("E4", dt.date(2024, 3, 4))

def test_import_attendance_csv(seeded, tmp_path):
    path = tmp_path / "attendance.csv"
    pd.DataFrame([
        {"employee_id": "E4", "work_date": "2024-03-04", "hours_worked": "8", "entry_time": "", "exit_time": ""},
        {"employee_id": "E4", "work_date": "2024-03-05", "hours_worked": "", "entry_time": "08:00", "exit_time": "19:00"},
        {"employee_id": "E4", "work_date": "2024-03-04", "hours_worked": "4", "entry_time": "", "exit_time": ""},
        {"employee_id": "NOPE", "work_date": "2024-03-04", "hours_worked": "8", "entry_time": "", "exit_time": ""},
        {"employee_id": "E4", "work_date": "not a date", "hours_worked": "8", "entry_time": "", "exit_time": ""},
    ]).to_csv(path, index=False)

    result = seeded.employees.import_attendance(path)

    assert result["total_rows"] == 5
    assert result["imported"] == 2
    assert [e["row"] for e in result["errors"]] == [2, 3, 4]
    assert [e["code"] for e in result["errors"]] == ["VALIDATION_ERROR", "NOT_FOUND", "VALIDATION_ERROR"]

    liq = seeded.generate_liquidation("E4", "2024-03")
    # 2 days of 25,000 plus 3h overtime at 3,125/h x 1.5
    assert liq.gross_salary == Decimal("64062.50")

def test_import_attendance_requires_columns(seeded):
    with pytest.raises(ValidationError):
        seeded.employees.import_attendance(pd.DataFrame([{"employee_id": "E4"}]))

def test_import_blank_hours_falls_back_to_clock_times(seeded, uow_factory):
    frame = pd.DataFrame([
        {"employee_id": "E4", "work_date": "2024-03-04", "hours_worked": float("nan"),
         "entry_time": "09:00", "exit_time": "17:00"},
        {"employee_id": "E4", "work_date": "2024-03-05", "hours_worked": "  ",
         "entry_time": "09:00", "exit_time": "13:30"},
        {"employee_id": "E4", "work_date": "2024-03-06", "hours_worked": None,
         "entry_time": float("nan"), "exit_time": ""},
    ])

    result = seeded.employees.import_attendance(frame)

    assert result["imported"] == 2
    assert [(e["row"], e["code"]) for e in result["errors"]] == [(2, "VALIDATION_ERROR")]
    with uow_factory() as uow:
        stored = uow.attendance.find_by_employee_and_date_range("E4", dt.date(2024, 3, 1), dt.date(2024, 3, 31))
    assert [r.hours_worked for r in stored] == [Decimal("8.00"), Decimal("4.50")]

def test_attendance_hours_not_a_number(seeded):
    with pytest.raises(ValidationError):
        seeded.employees.record_attendance("E4", dt.date(2024, 3, 4), float("nan"))
