# salesdesk/services/commission.py
"""
Monthly commission rule.

    base  = sales * 0.25
    bonus = sales * 0.05  when sales > 5,000,000 (strict), else 0
    total = base + bonus

Figures are plain float sums; nothing is rounded here. Callers that show a
single whole-unit figure use ``rounded_total``, which rounds halves up.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

BASE_RATE = 0.25
BONUS_RATE = 0.05
BONUS_THRESHOLD = 5_000_000


@dataclass
class CommissionFigures:
    employee_id: int
    total_sales: float = 0.0
    total_cost: float = 0.0
    sales_count: int = 0
    base_commission: float = 0.0
    bonus_commission: float = 0.0
    total_commission: float = 0.0
    has_bonus: bool = False
    lines: list = field(default_factory=list, repr=False)

    @property
    def margin(self) -> float:
        return self.total_sales - self.total_cost

    @property
    def rounded_total(self) -> int:
        return round_half_up(self.total_commission)

    def to_dict(self) -> dict:
        return {
            "employeeId": self.employee_id,
            "totalSales": self.total_sales,
            "totalCost": self.total_cost,
            "salesCount": self.sales_count,
            "baseCommission": self.base_commission,
            "bonusCommission": self.bonus_commission,
            "totalCommission": self.total_commission,
            "roundedTotalCommission": self.rounded_total,
            "hasBonus": self.has_bonus,
        }


def round_half_up(value: float) -> int:
    """2.5 -> 3, where the builtin round() would give 2."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def commission_for(total_sales: float) -> tuple[float, float, float, bool]:
    """Return (base, bonus, total, has_bonus) for one salesperson's monthly sales."""
    has_bonus = total_sales > BONUS_THRESHOLD
    base = total_sales * BASE_RATE
    bonus = total_sales * BONUS_RATE if has_bonus else 0
    return base, bonus, base + bonus, has_bonus


def calculate_commissions(records: Iterable) -> dict[int, CommissionFigures]:
    """
    Group sale-like records by ``employee_id`` and apply the commission rule.

    Each record needs ``employee_id``, ``amount`` and ``cost``. Records without
    an employee belong to no one and are left out of every total.
    """
    figures: dict[int, CommissionFigures] = {}
    for rec in records:
        emp_id = getattr(rec, "employee_id", None)
        if emp_id is None:
            continue
        fig = figures.get(emp_id)
        if fig is None:
            fig = figures[emp_id] = CommissionFigures(employee_id=emp_id)
        fig.total_sales += rec.amount
        fig.total_cost += getattr(rec, "cost", 0) or 0
        fig.sales_count += 1
        fig.lines.append(rec)

    for fig in figures.values():
        base, bonus, total, has_bonus = commission_for(fig.total_sales)
        fig.base_commission = base
        fig.bonus_commission = bonus
        fig.total_commission = total
        fig.has_bonus = has_bonus
    return figures
