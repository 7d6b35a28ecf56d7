"""
Attendance aggregation: daily records for a month -> worked days,
regular hours and overtime hours, plus a day-by-day detail view.
"""
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import pandas as pd

from ..core.utils import to_hours
from ..payroll.models import AttendanceDay, AttendanceDetail, AttendanceRecord, AttendanceSummary, Period

DEFAULT_SHIFT_HOURS = Decimal("8")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

def _decimal_sum(s: pd.Series) -> Decimal:
    return sum(s, Decimal("0"))

def _text(value) -> Optional[str]:
    return None if value is None or pd.isna(value) or value == "" else value

def _first_set(s: pd.Series) -> Optional[str]:
    return next((_text(v) for v in s if _text(v)), None)

def _last_set(s: pd.Series) -> Optional[str]:
    return _first_set(s.iloc[::-1])

def daily_frame(records: Iterable[AttendanceRecord], shift_hours: Decimal = DEFAULT_SHIFT_HOURS) -> pd.DataFrame:
    """One row per date with positive hours: hours, regular, overtime, entry/exit times."""
    rows = [{
        "work_date": r.work_date,
        "hours": Decimal(r.hours_worked or 0),
        "entry_time": r.entry_time,
        "exit_time": r.exit_time,
    } for r in records]
    columns = ["hours", "regular", "overtime", "entry_time", "exit_time"]
    if not rows:
        return pd.DataFrame(columns=columns)

    # several records on one date (legacy data) are merged into one day
    daily = pd.DataFrame(rows).groupby("work_date").agg(
        hours=("hours", _decimal_sum),
        entry_time=("entry_time", _first_set),
        exit_time=("exit_time", _last_set),
    )
    daily = daily[daily["hours"] > 0].copy()
    daily["regular"] = daily["hours"].map(lambda h: min(h, shift_hours))
    daily["overtime"] = daily["hours"] - daily["regular"]
    return daily[columns]

def summarize(records: Iterable[AttendanceRecord], shift_hours: Decimal = DEFAULT_SHIFT_HOURS) -> AttendanceSummary:
    """Split each day's hours into regular (up to the shift) and overtime."""
    daily = daily_frame(records, shift_hours)
    if daily.empty:
        return AttendanceSummary()
    return AttendanceSummary(
        days_worked=int(len(daily)),
        regular_hours=to_hours(_decimal_sum(daily["regular"])),
        overtime_hours=to_hours(_decimal_sum(daily["overtime"])),
    )

def detail(employee_id: str, period: Period, records: Iterable[AttendanceRecord],
           shift_hours: Decimal = DEFAULT_SHIFT_HOURS) -> AttendanceDetail:
    """
    Walk every calendar day of the period.

    A day with hours at or above the shift is complete, one below it is
    incomplete; a Monday-Friday date without hours counts as an absence.
    """
    daily = daily_frame(records, shift_hours)
    days = []
    day = period.start
    while day <= period.end:
        is_workday = day.weekday() < 5
        if day in daily.index:
            row = daily.loc[day]
            days.append(AttendanceDay(
                work_date=day,
                weekday=WEEKDAYS[day.weekday()],
                is_workday=is_workday,
                attended=True,
                hours_worked=to_hours(row["hours"]),
                overtime_hours=to_hours(row["overtime"]),
                entry_time=_text(row["entry_time"]),
                exit_time=_text(row["exit_time"]),
            ))
        else:
            days.append(AttendanceDay(
                work_date=day, weekday=WEEKDAYS[day.weekday()], is_workday=is_workday, attended=False,
            ))
        day += timedelta(days=1)

    complete = int((daily["hours"] >= shift_hours).sum()) if not daily.empty else 0
    return AttendanceDetail(
        employee_id=employee_id,
        period=period.label,
        days_in_month=len(days),
        days_worked=int(len(daily)),
        complete_days=complete,
        incomplete_days=int(len(daily)) - complete,
        absent_days=sum(1 for d in days if d.is_workday and not d.attended),
        overtime_days=sum(1 for d in days if d.overtime_hours > 0),
        total_hours=to_hours(_decimal_sum(daily["hours"])),
        regular_hours=to_hours(_decimal_sum(daily["regular"])),
        overtime_hours=to_hours(_decimal_sum(daily["overtime"])),
        days=tuple(days),
    )

class AttendanceAggregator:
    """Reads a month of attendance from the attendance store and summarizes it."""

    def __init__(self, attendance_store, shift_hours: Decimal = DEFAULT_SHIFT_HOURS):
        self.attendance_store = attendance_store
        self.shift_hours = Decimal(str(shift_hours))

    def records_for(self, employee_id: str, period: Period) -> Sequence[AttendanceRecord]:
        return self.attendance_store.find_by_employee_and_date_range(employee_id, period.start, period.end)

    def aggregate(self, employee_id: str, period) -> AttendanceSummary:
        period = Period.of(period)
        return summarize(self.records_for(employee_id, period), self.shift_hours)

    def detail(self, employee_id: str, period) -> AttendanceDetail:
        period = Period.of(period)
        return detail(employee_id, period, self.records_for(employee_id, period), self.shift_hours)
