from flask import Blueprint, current_app, jsonify, request

from salesdesk.extensions import db
from salesdesk.models import Order
from salesdesk.models.order import PAYMENT_BANK_TRANSFER
from salesdesk.services.checkout import (
    bank_instructions,
    create_order as create_order_record,
    find_product,
    resolve_referral,
    send_order_emails,
    vat_breakdown,
)
from salesdesk.services.errors import CheckoutError, error_response_body

order_bp = Blueprint("order_bp", __name__, url_prefix="/api/orders")
product_bp = Blueprint("product_bp", __name__, url_prefix="/api/products")


@order_bp.post("")
def create_order():
    data = request.get_json(silent=True) or {}
    try:
        order = create_order_record(data)
    except CheckoutError as e:
        db.session.rollback()
        return jsonify(error_response_body(e)), e.status_code
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("create_order failed")
        return jsonify({"ok": False, "error": str(e)}), 500

    send_order_emails(order)

    body = {
        "ok": True,
        "order": order.to_dict(),
        "orderReference": order.order_reference,
        "amount": order.total_amount,
        "display": vat_breakdown(order.total_amount, current_app.config["VAT_RATE"]),
    }
    if order.payment_type == PAYMENT_BANK_TRANSFER:
        body["bankAccount"] = bank_instructions(current_app.config)
    return jsonify(body), 201


@order_bp.get("/<int:order_id>")
def get_order(order_id: int):
    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({"ok": False, "error": "Order not found."}), 404
    return jsonify({"ok": True, "order": order.to_dict()})


@product_bp.get("/<product_key>")
def get_product(product_key: str):
    product = find_product(product_key)
    if product is None or not product.is_active:
        return jsonify({"ok": False, "error": "Product not found."}), 404

    try:
        quantity = max(1, int(request.args.get("quantity", 1)))
    except (TypeError, ValueError):
        quantity = 1

    employee = resolve_referral(request.args.get("ref"))
    return jsonify({
        "ok": True,
        "product": product.to_dict(),
        "salesperson": {"id": employee.id, "name": employee.name} if employee else None,
        "quantity": quantity,
        "display": vat_breakdown(product.price * quantity, current_app.config["VAT_RATE"]),
    })
