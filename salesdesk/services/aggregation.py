# salesdesk/services/aggregation.py
"""
Turns completed online orders and offline sales into one list of sale lines,
groups them per salesperson and builds dashboard totals.

Orders are filtered on ``created_at``; sales on ``sale_date``.
Online cost uses the product's current cost, offline cost uses the snapshot
taken at entry.
"""
from __future__ import annotations

from calendar import monthrange
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from salesdesk.extensions import db
from salesdesk.models import Employee, Order, Sale
from salesdesk.models.order import STATUS_COMPLETED
from salesdesk.services.commission import calculate_commissions

ORIGIN_ONLINE = "online"
ORIGIN_OFFLINE = "offline"

RANGE_KEYS = ("day", "week", "month", "custom")


@dataclass
class SaleLine:
    origin: str
    source_id: int
    employee_id: int | None
    employee_name: str | None
    product_id: int | None
    product_name: str | None
    date: date
    quantity: int
    amount: float
    cost: float
    customer_name: str | None = None
    status: str = STATUS_COMPLETED

    def to_dict(self) -> dict:
        return {
            "type": self.origin,
            "id": self.source_id,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "productId": self.product_id,
            "productName": self.product_name,
            "date": self.date.isoformat(),
            "quantity": self.quantity,
            "amount": self.amount,
            "cost": self.cost,
            "customerName": self.customer_name,
            "status": self.status,
        }


# ---- record -> line --------------------------------------------------------

def order_line(order: Order) -> SaleLine:
    product = order.product
    unit_cost = product.cost if product else 0
    amount = order.total_amount
    if amount is None and product is not None:
        amount = product.price * order.quantity
    created = order.created_at
    return SaleLine(
        origin=ORIGIN_ONLINE,
        source_id=order.id,
        employee_id=order.employee_id,
        employee_name=order.employee.name if order.employee else None,
        product_id=order.product_id,
        product_name=product.name if product else None,
        date=created.date() if isinstance(created, datetime) else created,
        quantity=order.quantity,
        amount=amount or 0,
        cost=(unit_cost or 0) * order.quantity,
        customer_name=order.customer_name,
        status=order.normalized_status,
    )


def sale_line(sale: Sale) -> SaleLine:
    return SaleLine(
        origin=ORIGIN_OFFLINE,
        source_id=sale.id,
        employee_id=sale.employee_id,
        employee_name=sale.employee.name if sale.employee else None,
        product_id=sale.product_id,
        product_name=sale.product.name if sale.product else None,
        date=sale.sale_date,
        quantity=sale.quantity,
        amount=sale.amount,
        cost=sale.unit_cost * sale.quantity,
        customer_name=sale.customer_name,
    )


def build_lines(orders: Iterable[Order], sales: Iterable[Sale]) -> list[SaleLine]:
    """Completed orders plus every offline sale, newest first."""
    lines = [order_line(o) for o in orders if o.normalized_status == STATUS_COMPLETED]
    lines.extend(sale_line(s) for s in sales)
    lines.sort(key=lambda line: line.date, reverse=True)
    return lines


def group_by_employee(lines: Iterable[SaleLine]) -> dict[int, list[SaleLine]]:
    grouped: dict[int, list[SaleLine]] = defaultdict(list)
    for line in lines:
        if line.employee_id is None:
            continue
        grouped[line.employee_id].append(line)
    for items in grouped.values():
        items.sort(key=lambda line: line.date, reverse=True)
    return dict(grouped)


def summarize(lines: list[SaleLine]) -> dict:
    """
    Dashboard totals. Sales, cost and margin cover every line, including
    orders with no salesperson; commission is the sum of per-salesperson
    figures, so unassigned lines earn no commission.
    """
    total_sales = sum(line.amount for line in lines)
    total_cost = sum(line.cost for line in lines)
    total_margin = total_sales - total_cost
    per_employee = calculate_commissions(lines)
    total_commission = sum(f.total_commission for f in per_employee.values())
    return {
        "totalSales": total_sales,
        "totalCost": total_cost,
        "totalMargin": total_margin,
        "totalCommission": total_commission,
        "companyMargin": total_margin - total_commission,
        "salesCount": len(lines),
        "onlineCount": sum(1 for line in lines if line.origin == ORIGIN_ONLINE),
        "offlineCount": sum(1 for line in lines if line.origin == ORIGIN_OFFLINE),
        "unassignedCount": sum(1 for line in lines if line.employee_id is None),
    }


# ---- date windows ------------------------------------------------------------

def month_bounds(year_month: str) -> tuple[date, date]:
    """'2025-03' -> (2025-03-01, 2025-03-31), both inclusive."""
    try:
        year, month = (int(p) for p in year_month.split("-", 1))
        last = monthrange(year, month)[1]
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid month {year_month!r}, expected YYYY-MM")
    return date(year, month, 1), date(year, month, last)


def date_range(range_key: str, today: date, start: date | None = None, end: date | None = None) -> tuple[date, date]:
    """Inclusive (start, end) for day / week (Mon-Sun) / month / custom."""
    if range_key == "day":
        return today, today
    if range_key == "week":
        monday = today - timedelta(days=today.weekday())
        return monday, monday + timedelta(days=6)
    if range_key == "custom":
        first = start or today.replace(day=1)
        last = end or today
        if last < first:
            raise ValueError("end date is before start date")
        return first, last
    return month_bounds(today.strftime("%Y-%m"))


def _day_window(start: date, end: date) -> tuple[datetime, datetime]:
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


# ---- queries -----------------------------------------------------------------

def completed_orders_between(start: date, end: date, employee_id: int | None = None) -> list[Order]:
    lo, hi = _day_window(start, end)
    stmt = db.select(Order).where(
        Order.status == STATUS_COMPLETED,
        Order.created_at >= lo,
        Order.created_at < hi,
    )
    if employee_id is not None:
        stmt = stmt.where(Order.employee_id == employee_id)
    return list(db.session.execute(stmt).unique().scalars())


def orders_between(start: date, end: date, employee_id: int | None = None) -> list[Order]:
    """All orders regardless of status, newest first."""
    lo, hi = _day_window(start, end)
    stmt = db.select(Order).where(Order.created_at >= lo, Order.created_at < hi)
    if employee_id is not None:
        stmt = stmt.where(Order.employee_id == employee_id)
    stmt = stmt.order_by(Order.created_at.desc())
    return list(db.session.execute(stmt).unique().scalars())


def sales_between(start: date, end: date, employee_id: int | None = None, product_id: int | None = None) -> list[Sale]:
    stmt = db.select(Sale).where(Sale.sale_date >= start, Sale.sale_date <= end)
    if employee_id is not None:
        stmt = stmt.where(Sale.employee_id == employee_id)
    if product_id is not None:
        stmt = stmt.where(Sale.product_id == product_id)
    stmt = stmt.order_by(Sale.sale_date.desc(), Sale.id.desc())
    return list(db.session.execute(stmt).unique().scalars())


def lines_between(start: date, end: date, employee_id: int | None = None) -> list[SaleLine]:
    return build_lines(
        completed_orders_between(start, end, employee_id),
        sales_between(start, end, employee_id),
    )


def active_employee_count() -> int:
    return db.session.scalar(
        db.select(db.func.count(Employee.id)).where(Employee.status == "active")
    ) or 0


# ---- statistics ------------------------------------------------------------------

def monthly_trend(lines: Iterable[SaleLine], months: list[str]) -> list[dict]:
    totals = dict.fromkeys(months, 0)
    for line in lines:
        key = line.date.strftime("%Y-%m")
        if key in totals:
            totals[key] += line.amount
    return [{"month": m, "totalSales": totals[m]} for m in months]


def sales_by_product(lines: Iterable[SaleLine]) -> list[dict]:
    totals: dict[int, dict] = {}
    for line in lines:
        row = totals.setdefault(line.product_id, {
            "productId": line.product_id,
            "productName": line.product_name,
            "totalSales": 0,
            "quantity": 0,
        })
        row["totalSales"] += line.amount
        row["quantity"] += line.quantity
    return sorted(totals.values(), key=lambda r: r["totalSales"], reverse=True)


def top_employees(lines: list[SaleLine], limit: int = 10) -> list[dict]:
    rows = []
    for emp_id, fig in calculate_commissions(lines).items():
        name = next((line.employee_name for line in fig.lines if line.employee_name), None)
        rows.append({
            "employeeId": emp_id,
            "employeeName": name,
            "totalSales": fig.total_sales,
            "salesCount": fig.sales_count,
            "totalCommission": fig.total_commission,
        })
    rows.sort(key=lambda r: r["totalSales"], reverse=True)
    return rows[:limit]


def months_back(today: date, count: int) -> list[str]:
    """Last ``count`` YYYY-MM keys ending with the current month, oldest first."""
    year, month = today.year, today.month
    keys = []
    for _ in range(max(1, count)):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))

