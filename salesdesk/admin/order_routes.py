from flask import current_app, jsonify, request
from sqlalchemy import func

from salesdesk.extensions import db
from salesdesk.models import Order
from salesdesk.models.order import ORDER_STATUSES, PAYMENT_TYPES, PENDING_STATUSES, STATUS_PENDING_PAYMENT
from salesdesk.services import reconciliation
from salesdesk.services.errors import CheckoutError, error_response_body
from salesdesk.services.order_completed_hook import on_order_completed
from salesdesk.timeutil import utcnow

from . import admin_bp
from .utils import parse_int


def _expiry_hours() -> int:
    return int(current_app.config.get("BANK_TRANSFER_EXPIRY_HOURS", reconciliation.DEFAULT_EXPIRY_HOURS))


@admin_bp.get("/orders")
def orders_index():
    status = (request.args.get("status") or "all").strip()
    payment_type = (request.args.get("paymentType") or "").strip()
    limit = max(1, min(parse_int(request.args.get("limit"), 200), 1000))

    stmt = db.select(Order)
    count_stmt = db.select(Order.status, func.count(Order.id)).group_by(Order.status)
    if payment_type in PAYMENT_TYPES:
        stmt = stmt.where(Order.payment_type == payment_type)
        count_stmt = count_stmt.where(Order.payment_type == payment_type)

    stats = {"total": 0, **{s: 0 for s in ORDER_STATUSES}}
    for raw_status, n in db.session.execute(count_stmt):
        # legacy "pending" rows count as pending_payment
        key = STATUS_PENDING_PAYMENT if raw_status in PENDING_STATUSES else raw_status
        stats["total"] += n
        if key in stats:
            stats[key] += n

    if status == STATUS_PENDING_PAYMENT:
        stmt = stmt.where(Order.status.in_(PENDING_STATUSES))
    elif status in ORDER_STATUSES:
        stmt = stmt.where(Order.status == status)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
    rows = list(db.session.execute(stmt).unique().scalars())

    now = utcnow()
    hours = _expiry_hours()
    return jsonify({
        "ok": True,
        "stats": stats,
        "filters": {"status": status, "paymentType": payment_type or None, "limit": limit},
        "orders": [reconciliation.order_view(o, now, hours) for o in rows],
    })


@admin_bp.post("/orders/<int:order_id>/confirm-transfer")
def order_confirm_transfer(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = reconciliation.confirm_bank_transfer(order_id, acknowledge=data.get("acknowledge"))
    except CheckoutError as e:
        db.session.rollback()
        return jsonify(error_response_body(e)), e.status_code
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("confirm-transfer failed for order %s", order_id)
        return jsonify({"ok": False, "error": str(e)}), 500

    hook = {"ok": False}
    try:
        hook = on_order_completed(order.id)
    except Exception:
        current_app.logger.exception("Completion hook failed for order %s", order.id)

    return jsonify({"ok": True, "order": order.to_dict(), "hook": hook})


@admin_bp.post("/orders/<int:order_id>/cancel")
def order_cancel(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = reconciliation.cancel_order(order_id, acknowledge=data.get("acknowledge"))
    except CheckoutError as e:
        db.session.rollback()
        return jsonify(error_response_body(e)), e.status_code
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("cancel failed for order %s", order_id)
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "order": order.to_dict()})


@admin_bp.post("/orders/expire-overdue")
def orders_expire_overdue():
    data = request.get_json(silent=True) or {}
    dry_run = bool(data.get("dryRun"))
    if not dry_run and data.get("acknowledge") is not True:
        return jsonify({"ok": False, "error": "Send acknowledge=true to cancel overdue orders."}), 400
    try:
        ids = reconciliation.expire_overdue(expiry_hours=_expiry_hours(), dry_run=dry_run)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("expire-overdue failed")
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "dryRun": dry_run, "orderIds": ids, "count": len(ids)})
