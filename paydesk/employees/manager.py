"""
Employee master data and attendance import.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pandas as pd
import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.errors import NotFoundError, ValidationError
from ..core.utils import to_hours, to_money
from ..payroll.models import AttendanceRecord, Employee

logger = logging.getLogger(__name__)

ATTENDANCE_COLUMNS = ["employee_id", "work_date", "entry_time", "exit_time", "hours_worked"]

class EmployeePatch(BaseModel):
    """Mutable employee fields; identity (id, national id, company) never changes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Optional[str] = None
    position: Optional[str] = None
    base_salary: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("name must not be empty")
        return v.strip() if v is not None else v

    @classmethod
    def parse(cls, data: Union["EmployeePatch", Dict[str, Any]]) -> "EmployeePatch":
        if isinstance(data, EmployeePatch):
            return data
        try:
            return cls.model_validate(data or {})
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError(f"Invalid employee patch: {loc}: {first.get('msg')}", field=loc) from None

    def changes(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if "base_salary" in data:
            data["base_salary"] = to_money(data["base_salary"])
        return data

def _blank_to_none(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return None if pd.isna(value) else value

def _clock(value: str) -> datetime:
    try:
        return datetime.strptime(value.strip(), "%H:%M:%S" if value.count(":") == 2 else "%H:%M")
    except ValueError:
        raise ValidationError(f"Clock time must look like HH:MM, got {value!r}", field="time") from None

def hours_between(entry_time: str, exit_time: str) -> Decimal:
    """Hours between two HH:MM[:SS] clock times on the same day."""
    start, end = _clock(entry_time), _clock(exit_time)
    if end < start:
        raise ValidationError(f"Exit time {exit_time} is before entry time {entry_time}", field="exit_time")
    return to_hours(Decimal((end - start).seconds) / Decimal(3600))

class EmployeeManager:
    """Employee directory on top of the unit of work."""

    def __init__(self, uow_factory: Callable):
        self.uow_factory = uow_factory

    def get(self, employee_id: str) -> Employee:
        with self.uow_factory() as uow:
            employee = uow.employees.find_by_id(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def list_for_company(self, company_id: Optional[str] = None) -> List[Employee]:
        with self.uow_factory() as uow:
            return uow.employees.find(company_id=company_id)

    def register(self, employee_id: str, name: str, base_salary: Any, company_id: Optional[str] = None,
                 national_id: Optional[str] = None, position: Optional[str] = None) -> Employee:
        employee_id = (employee_id or "").strip()
        if not employee_id:
            raise ValidationError("Employee id must not be empty", field="id")
        if not (name or "").strip():
            raise ValidationError("Employee name must not be empty", field="name")
        try:
            salary = to_money(base_salary)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Base salary must be a number, got {base_salary!r}", field="base_salary") from None
        if salary < 0:
            raise ValidationError("Base salary must not be negative", field="base_salary")

        with self.uow_factory() as uow:
            employee = uow.employees.add(Employee(
                id=employee_id,
                name=name.strip(),
                base_salary=salary,
                company_id=company_id,
                national_id=national_id,
                position=position,
            ))
        logger.info("Registered employee %s (%s)", employee.id, employee.company_id or "no company")
        return employee

    def apply_patch(self, employee_id: str, patch: Union[EmployeePatch, Dict[str, Any]]) -> Employee:
        patch = EmployeePatch.parse(patch)
        changes = patch.changes()
        with self.uow_factory() as uow:
            employee = uow.employees.update(employee_id, changes) if changes else uow.employees.find_by_id(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        if changes:
            logger.info("Updated employee %s: %s", employee_id, sorted(changes))
        return employee

    def record_attendance(self, employee_id: str, work_date: date, hours_worked: Any = None,
                          entry_time: Optional[str] = None, exit_time: Optional[str] = None) -> AttendanceRecord:
        if hours_worked is None:
            if not (entry_time and exit_time):
                raise ValidationError("Either hours_worked or entry and exit times are required", field="hours_worked")
            hours_worked = hours_between(entry_time, exit_time)
        try:
            hours = to_hours(hours_worked)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Hours worked must be a number, got {hours_worked!r}", field="hours_worked") from None
        if not hours.is_finite():
            raise ValidationError(f"Hours worked must be a number, got {hours_worked!r}", field="hours_worked")
        if hours < 0 or hours > 24:
            raise ValidationError(f"Hours worked out of range: {hours}", field="hours_worked")

        with self.uow_factory() as uow:
            if uow.employees.find_by_id(employee_id) is None:
                raise NotFoundError("Employee", employee_id)
            return uow.attendance.add(employee_id, work_date, hours, entry_time=entry_time, exit_time=exit_time)

    def import_attendance(self, source: Union[str, Path, pd.DataFrame]) -> Dict[str, Any]:
        """
        Load attendance rows from a CSV/Excel file or a DataFrame.

        Expected columns: employee_id, work_date and either hours_worked or
        entry_time/exit_time. Each row is stored on its own; rejected rows
        are reported with their reason.
        """
        if isinstance(source, pd.DataFrame):
            df = source.copy()
        else:
            path = Path(source)
            if path.suffix.lower() == ".csv":
                df = pd.read_csv(path, dtype=str)
            elif path.suffix.lower() == ".xlsx":
                df = pd.read_excel(path, dtype=str)
            else:
                raise ValidationError(f"Unsupported attendance file: {path.suffix or '(none)'}", field="source")

        missing = {"employee_id", "work_date"} - set(df.columns)
        if missing:
            raise ValidationError(f"Missing attendance columns: {', '.join(sorted(missing))}", field="columns")
        for col in ATTENDANCE_COLUMNS:
            if col not in df.columns:
                df[col] = None
        df = df.astype(object).map(_blank_to_none)
        df["employee_id"] = df["employee_id"].map(lambda v: str(v).strip() if v is not None else v)

        imported, errors = 0, []
        for idx, row in df.iterrows():
            try:
                work_date = pd.to_datetime(row["work_date"]).date()
                self.record_attendance(
                    row["employee_id"],
                    work_date,
                    hours_worked=row["hours_worked"],
                    entry_time=row["entry_time"],
                    exit_time=row["exit_time"],
                )
                imported += 1
            except (ValidationError, NotFoundError) as e:
                errors.append({"row": int(idx), "employee_id": row["employee_id"], "code": e.code, "reason": e.reason})
            except (ValueError, TypeError, InvalidOperation) as e:
                errors.append({"row": int(idx), "employee_id": row["employee_id"],
                               "code": ValidationError.code, "reason": str(e)})

        logger.info("Attendance import: %d row(s) stored, %d rejected", imported, len(errors))
        return {"total_rows": int(len(df)), "imported": imported, "errors": errors}
