from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.errors import ValidationError
from ..core.utils import to_money

# Statutory defaults: pension fund 10%, health 7% of gross
PENSION_RATE = Decimal("0.10")
HEALTH_RATE = Decimal("0.07")

@dataclass(frozen=True)
class DeductionRule:
    concept: str
    rate: Decimal

@dataclass(frozen=True)
class DeductionLine:
    concept: str
    amount: Decimal

@dataclass(frozen=True)
class DeductionBreakdown:
    total_deductions: Decimal
    details: Tuple[DeductionLine, ...] = field(default_factory=tuple)

    def amount_for(self, concept: str) -> Decimal:
        return sum((d.amount for d in self.details if d.concept == concept), Decimal("0"))

    def to_dict(self) -> Dict:
        return asdict(self)

class DeductionCalculator:
    """Applies rate-based deductions to a gross salary.

    Each line is rounded to cents on its own and the total is the exact sum
    of the rounded lines, so ``total_deductions == sum(details)`` holds for
    any rule set.
    """

    def __init__(self, rules: Optional[Iterable[DeductionRule]] = None):
        if rules is None:
            rules = self.statutory_rules()
        self.rules: List[DeductionRule] = list(rules)
        for rule in self.rules:
            if rule.rate < 0:
                raise ValidationError(f"Deduction rate for {rule.concept} must not be negative", field="rate")

    @staticmethod
    def statutory_rules(pension_concept: str = "pension", health_concept: str = "health") -> List[DeductionRule]:
        return [DeductionRule(pension_concept, PENSION_RATE), DeductionRule(health_concept, HEALTH_RATE)]

    @classmethod
    def from_settings(cls, cfg) -> "DeductionCalculator":
        rules = [
            DeductionRule(cfg.PENSION_CONCEPT, Decimal(str(cfg.PENSION_RATE))),
            DeductionRule(cfg.HEALTH_CONCEPT, Decimal(str(cfg.HEALTH_RATE))),
        ]
        rules += [DeductionRule(concept, Decimal(str(rate))) for concept, rate in cfg.EXTRA_DEDUCTIONS]
        return cls(rules)

    def compute_line(self, gross: Decimal, rule: DeductionRule) -> DeductionLine:
        return DeductionLine(concept=rule.concept, amount=to_money(gross * rule.rate))

    def calculate(self, gross) -> DeductionBreakdown:
        try:
            gross = to_money(gross)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Gross salary must be a number, got {gross!r}", field="gross_salary") from None
        if gross < 0:
            raise ValidationError(f"Gross salary must not be negative, got {gross}", field="gross_salary")
        details = tuple(self.compute_line(gross, rule) for rule in self.rules)
        total = sum((d.amount for d in details), Decimal("0.00"))
        return DeductionBreakdown(total_deductions=total, details=details)
