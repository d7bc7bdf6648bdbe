import io

import openpyxl
from flask import current_app, jsonify, request, send_file
from openpyxl.utils import get_column_letter
from sqlalchemy.exc import IntegrityError

from salesdesk.extensions import db
from salesdesk.models import Commission, Employee
from salesdesk.services import aggregation
from salesdesk.services.commission import CommissionFigures, calculate_commissions
from salesdesk.timeutil import utcnow

from . import admin_bp
from .utils import parse_int


def _selected_month(data=None) -> str:
    month = ((data or {}).get("month") or request.args.get("month") or "").strip()
    return month or utcnow().strftime("%Y-%m")


def _monthly_figures(month: str) -> dict[int, CommissionFigures]:
    """Per-salesperson figures; lines without a salesperson are left out."""
    start, end = aggregation.month_bounds(month)
    return calculate_commissions(aggregation.lines_between(start, end))


def _existing(month: str) -> dict[int, Commission]:
    rows = db.session.execute(db.select(Commission).where(Commission.year_month == month)).scalars()
    return {c.employee_id: c for c in rows}


def _report_rows(month: str) -> list[dict]:
    figures = _monthly_figures(month)
    existing = _existing(month)
    employees = {}
    if figures:
        employees = {
            e.id: e for e in db.session.execute(
                db.select(Employee).where(Employee.id.in_(list(figures)))
            ).scalars()
        }
    rows = []
    for emp_id, fig in figures.items():
        emp = employees.get(emp_id)
        rec = existing.get(emp_id)
        row = fig.to_dict()
        row.update({
            "employeeName": emp.name if emp else None,
            "employeeCode": emp.code if emp else None,
            "isPaid": bool(rec and rec.is_paid),
            "paidDate": rec.paid_date.isoformat() if rec and rec.paid_date else None,
            "commissionId": rec.id if rec else None,
        })
        rows.append(row)
    rows.sort(key=lambda r: r["totalSales"], reverse=True)
    return rows


def _apply_figures(rec: Commission, fig: CommissionFigures | None) -> None:
    if fig is None:
        return
    rec.total_sales = fig.total_sales
    rec.total_cost = fig.total_cost
    rec.sales_count = fig.sales_count
    rec.base_commission = fig.base_commission
    rec.bonus_commission = fig.bonus_commission
    rec.total_commission = fig.total_commission


def _find_or_create(employee_id: int, month: str, fig: CommissionFigures | None, max_tries: int = 3) -> Commission:
    """One row per (employee, month); a concurrent insert loses to the unique key and retries as a read."""
    for _ in range(max_tries):
        rec = db.session.scalar(
            db.select(Commission).where(Commission.employee_id == employee_id, Commission.year_month == month)
        )
        if rec is not None:
            return rec
        rec = Commission(employee_id=employee_id, year_month=month, is_paid=False)
        _apply_figures(rec, fig)
        try:
            with db.session.begin_nested():
                db.session.add(rec)
            return rec
        except IntegrityError:
            continue
    raise RuntimeError(f"Could not create commission record for employee {employee_id} {month}")


def _set_paid(rec: Commission, paid: bool, fig: CommissionFigures | None) -> None:
    rec.is_paid = paid
    rec.paid_date = utcnow() if paid else None
    if paid:
        # figures are frozen at the moment of payout
        _apply_figures(rec, fig)


@admin_bp.get("/commissions")
def commissions_index():
    month = _selected_month()
    try:
        rows = _report_rows(month)
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    totals = {
        "totalSales": sum(r["totalSales"] for r in rows),
        "totalCommission": sum(r["totalCommission"] for r in rows),
        "paidCommission": sum(r["totalCommission"] for r in rows if r["isPaid"]),
    }
    return jsonify({"ok": True, "month": month, "commissions": rows, "totals": totals})


@admin_bp.post("/commissions/toggle")
def commissions_toggle():
    data = request.get_json(silent=True) or {}
    month = _selected_month(data)
    employee_id = parse_int(data.get("employeeId"))
    if employee_id is None or db.session.get(Employee, employee_id) is None:
        return jsonify({"ok": False, "error": "Employee not found."}), 404
    try:
        fig = _monthly_figures(month).get(employee_id)
        rec = _find_or_create(employee_id, month, fig)
        _set_paid(rec, not rec.is_paid, fig)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"ok": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("commission toggle failed")
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "commission": rec.to_dict()})


@admin_bp.post("/commissions/mark-all-paid")
def commissions_mark_all_paid():
    data = request.get_json(silent=True) or {}
    if data.get("acknowledge") is not True:
        return jsonify({"ok": False, "error": "Send acknowledge=true to mark every payout as paid."}), 400
    month = _selected_month(data)
    try:
        figures = _monthly_figures(month)
        updated = 0
        for emp_id, fig in figures.items():
            rec = _find_or_create(emp_id, month, fig)
            if not rec.is_paid:
                _set_paid(rec, True, fig)
                updated += 1
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"ok": False, "error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("mark-all-paid failed")
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "month": month, "updated": updated})


@admin_bp.get("/commissions/export.xlsx")
def commissions_export_xlsx():
    month = _selected_month()
    try:
        rows = _report_rows(month)
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = f"Commissions {month}"

    headers = [
        "Code", "Salesperson", "Sales", "Cost", "Count",
        "Base", "Bonus", "Total", "Total (rounded)", "Bonus tier", "Paid", "Paid date",
    ]
    ws.append(headers)
    for r in rows:
        ws.append([
            r["employeeCode"], r["employeeName"], r["totalSales"], r["totalCost"], r["salesCount"],
            r["baseCommission"], r["bonusCommission"], r["totalCommission"], r["roundedTotalCommission"],
            "yes" if r["hasBonus"] else "no", "yes" if r["isPaid"] else "no", r["paidDate"] or "",
        ])

    for col_idx, _ in enumerate(headers, start=1):
        max_len = 0
        for row in ws.iter_rows(min_col=col_idx, max_col=col_idx):
            cell = row[0]
            if cell.value is not None:
                max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 2, 40)

    bio = io.BytesIO()
    wb.save(bio)
    bio.seek(0)
    return send_file(
        bio,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=f"commissions_{month}.xlsx",
    )
