"""
Provisional payments: the pension and health amounts withheld from a
liquidation, remitted to the funds when the salary is paid.

Also builds the monthly remittance report, optionally scoped to one company.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional, Union

import pandas as pd

from ..core.errors import ValidationError
from ..core.utils import period_label, to_money, utcnow
from ..payroll.models import Liquidation, Period, ProvisionalPayment, Record

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "id", "liquidation_id", "employee_id", "employee_name", "company_id",
    "period_label", "pension_amount", "health_amount", "total", "payment_date",
]
MONEY_COLUMNS = ["pension_amount", "health_amount", "total"]

@dataclass(frozen=True)
class ProvisionalReport(Record):
    period: str
    generated_at: datetime
    payment_count: int
    total_pension: Decimal
    total_health: Decimal
    total: Decimal
    company_id: Optional[str] = None

class ProvisionalPaymentGenerator:
    def __init__(
        self,
        uow_factory: Callable,
        pension_concept: str = "pension",
        health_concept: str = "health",
        clock: Callable = utcnow,
    ):
        self.uow_factory = uow_factory
        self.pension_concept = pension_concept
        self.health_concept = health_concept
        self.clock = clock

    def generate(self, liquidation: Liquidation, uow, paid_on: date) -> ProvisionalPayment:
        """Persist the provisional payment for ``liquidation`` inside the caller's unit of work.

        Amounts come from the deductions as stored, never from a recomputation.
        """
        deductions = uow.deductions.for_liquidation(liquidation.id)
        pension = sum((d.amount for d in deductions if d.concept == self.pension_concept), Decimal("0"))
        health = sum((d.amount for d in deductions if d.concept == self.health_concept), Decimal("0"))
        pension, health = to_money(pension), to_money(health)
        total = pension + health
        if total <= 0:
            raise ValidationError(
                f"Liquidation {liquidation.id} has no pension or health deductions to remit",
                field="deductions",
            )
        return uow.payments.add_provisional_payment(
            liquidation_id=liquidation.id,
            period_label=period_label(paid_on),
            pension_amount=pension,
            health_amount=health,
            total=total,
            payment_date=paid_on,
        )

    def _frame(self, period: Period, company_id: Optional[str]) -> pd.DataFrame:
        with self.uow_factory() as uow:
            rows = uow.payments.provisional_payments_between(period.start, period.end, company_id=company_id)
        return pd.DataFrame(rows, columns=REPORT_COLUMNS)

    def report_for_period(self, year: int, month: int, company_id: Optional[str] = None) -> ProvisionalReport:
        period = Period(year, month)
        df = self._frame(period, company_id)
        totals = {col: to_money(sum(df[col], Decimal("0"))) for col in MONEY_COLUMNS}
        report = ProvisionalReport(
            period=period.label,
            generated_at=self.clock(),
            payment_count=int(len(df)),
            total_pension=totals["pension_amount"],
            total_health=totals["health_amount"],
            total=totals["total"],
            company_id=company_id,
        )
        logger.info(
            "Provisional report %s company=%s: %d payment(s), total %s",
            report.period, company_id or "*", report.payment_count, report.total,
        )
        return report

    def export_report(self, year: int, month: int, path: Union[str, Path],
                      company_id: Optional[str] = None) -> Path:
        """Write the month's payment rows to .csv or .xlsx, picked by extension."""
        period = Period(year, month)
        path = Path(path)
        df = self._frame(period, company_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        suffix = path.suffix.lower()
        if suffix == ".csv":
            df.to_csv(path, index=False)
        elif suffix == ".xlsx":
            for col in MONEY_COLUMNS:
                df[col] = df[col].astype(float)
            df.to_excel(path, index=False, sheet_name=period.label)
        else:
            raise ValidationError(f"Unsupported export format: {path.suffix or '(none)'}", field="path")
        logger.info("Exported %d provisional payment(s) for %s to %s", len(df), period.label, path)
        return path
