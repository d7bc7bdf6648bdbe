from datetime import date

from flask import current_app, jsonify, request

from salesdesk.extensions import db
from salesdesk.models import Employee, Product, Sale
from salesdesk.services.aggregation import sales_between

from . import admin_bp
from .utils import parse_date, parse_int


def _load_sale_fields(data: dict, sale: Sale | None = None):
    """Validate the form and return (fields, error)."""
    emp_id = parse_int(data.get("employeeId"), sale.employee_id if sale else None)
    prod_id = parse_int(data.get("productId"), sale.product_id if sale else None)
    quantity = parse_int(data.get("quantity"), sale.quantity if sale else 1)
    sale_date = parse_date(data.get("saleDate")) if data.get("saleDate") else (sale.sale_date if sale else None)

    if emp_id is None or prod_id is None or sale_date is None:
        return None, "employeeId, productId and saleDate (YYYY-MM-DD) are required."
    if quantity is None or quantity <= 0:
        return None, "quantity must be a positive integer."

    employee = db.session.get(Employee, emp_id)
    if employee is None:
        return None, "Salesperson not found."
    # inactive salespeople keep their history but get no new entries
    if not employee.is_active and (sale is None or sale.employee_id != emp_id):
        return None, "Salesperson is inactive."

    product = db.session.get(Product, prod_id)
    if product is None:
        return None, "Product not found."

    fields = {
        "employee_id": emp_id,
        "product_id": prod_id,
        "quantity": quantity,
        "sale_date": sale_date,
        "customer_name": (data.get("customerName") or "").strip() or None,
        "note": (data.get("note") or "").strip() or None,
    }
    if sale is None or sale.product_id != prod_id:
        fields["sale_price"] = product.price
        fields["sale_cost"] = product.cost
    return fields, None


@admin_bp.get("/sales")
def sales_index():
    start = parse_date(request.args.get("start")) or date.min
    end = parse_date(request.args.get("end")) or date.max
    rows = sales_between(
        start,
        end,
        employee_id=parse_int(request.args.get("employeeId")),
        product_id=parse_int(request.args.get("productId")),
    )
    return jsonify({
        "ok": True,
        "sales": [s.to_dict() for s in rows],
        "totalAmount": sum(s.amount for s in rows),
    })


@admin_bp.post("/sales")
def sales_create():
    data = request.get_json(silent=True) or {}
    fields, error = _load_sale_fields(data)
    if error:
        return jsonify({"ok": False, "error": error}), 400
    try:
        sale = Sale(**fields)
        db.session.add(sale)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("sale create failed")
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "sale": sale.to_dict()}), 201


@admin_bp.put("/sales/<int:sale_id>")
def sales_update(sale_id: int):
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return jsonify({"ok": False, "error": "Sale not found."}), 404
    data = request.get_json(silent=True) or {}
    fields, error = _load_sale_fields(data, sale)
    if error:
        return jsonify({"ok": False, "error": error}), 400
    try:
        for key, value in fields.items():
            setattr(sale, key, value)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("sale update failed")
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "sale": sale.to_dict()})


@admin_bp.delete("/sales/<int:sale_id>")
def sales_delete(sale_id: int):
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return jsonify({"ok": False, "error": "Sale not found."}), 404
    db.session.delete(sale)
    db.session.commit()
    return jsonify({"ok": True})
