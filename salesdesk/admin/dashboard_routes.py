from flask import jsonify, request

from salesdesk.services import aggregation
from salesdesk.services.commission import calculate_commissions
from salesdesk.timeutil import utcnow

from . import admin_bp
from .utils import parse_date

STAT_PERIODS = {"1months": 1, "3months": 3, "6months": 6, "12months": 12}
RECENT_LIMIT = 10


@admin_bp.get("/dashboard")
def dashboard():
    """
    Totals for the selected window. Sales, cost and margin include orders
    without a salesperson; commission covers assigned lines only.
    """
    range_key = (request.args.get("range") or "month").strip()
    if range_key not in aggregation.RANGE_KEYS:
        range_key = "month"
    try:
        start, end = aggregation.date_range(
            range_key,
            utcnow().date(),
            parse_date(request.args.get("start")),
            parse_date(request.args.get("end")),
        )
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    lines = aggregation.lines_between(start, end)
    stats = aggregation.summarize(lines)
    stats["employeeCount"] = aggregation.active_employee_count()

    figures = calculate_commissions(lines)
    grouped = aggregation.group_by_employee(lines)
    per_employee = []
    for emp_id, emp_lines in grouped.items():
        row = figures[emp_id].to_dict()
        row["employeeName"] = emp_lines[0].employee_name
        per_employee.append(row)
    per_employee.sort(key=lambda r: r["totalSales"], reverse=True)

    return jsonify({
        "ok": True,
        "range": range_key,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "stats": stats,
        "perEmployee": per_employee,
        "recentSales": [line.to_dict() for line in lines[:RECENT_LIMIT]],
    })


@admin_bp.get("/statistics")
def statistics():
    """Monthly trend, sales by product and top 10 salespeople."""
    period = (request.args.get("period") or "6months").strip()
    today = utcnow().date()

    if period == "custom":
        start = parse_date(request.args.get("start")) or today.replace(day=1)
        end = parse_date(request.args.get("end")) or today
        if end < start:
            return jsonify({"ok": False, "error": "end date is before start date"}), 400
        count = (end.year - start.year) * 12 + (end.month - start.month) + 1
        months = aggregation.months_back(end, count)
    else:
        months = aggregation.months_back(today, STAT_PERIODS.get(period, 6))
        start = aggregation.month_bounds(months[0])[0]
        end = aggregation.month_bounds(months[-1])[1]

    lines = aggregation.lines_between(start, end)
    return jsonify({
        "ok": True,
        "period": period,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "monthly": aggregation.monthly_trend(lines, months),
        "byProduct": aggregation.sales_by_product(lines),
        "topEmployees": aggregation.top_employees(lines, limit=10),
    })
