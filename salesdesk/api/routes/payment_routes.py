from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, request

from salesdesk.extensions import db
from salesdesk.models import Order
from salesdesk.services.confirmation_guard import ConfirmationGuard, browser_session_id
from salesdesk.services.errors import CheckoutError, GatewayError, PaymentRecordingError
from salesdesk.services.gateway import UNKNOWN_ERROR, describe_error
from salesdesk.services.payment_confirm import confirm_payment, parse_order_reference

payment_bp = Blueprint("payment_bp", __name__)


def _read_back(order_reference: str):
    parsed = parse_order_reference(order_reference)
    return db.session.get(Order, int(parsed)) if parsed.isdigit() else None


@payment_bp.post("/payment-confirm")
def payment_confirm():
    data = request.get_json(silent=True) or {}
    try:
        result = confirm_payment(data.get("paymentKey"), data.get("orderId"), data.get("amount"))
    except PaymentRecordingError as e:
        # already logged at CRITICAL and alerted
        return jsonify({"error": e.message}), 400
    except GatewayError as e:
        return jsonify({"error": e.message, "code": e.code}), 400
    except CheckoutError as e:
        return jsonify({"error": e.message}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("payment-confirm failed")
        return jsonify({"error": str(e) or "Payment processing failed."}), 400
    return jsonify(result), 200


@payment_bp.get("/payment/success")
def payment_success():
    """
    Return view for the card gateway redirect. Whatever happens, the answer
    is built from the order as stored, not from the query string.
    """
    payment_key = request.args.get("paymentKey")
    order_reference = request.args.get("orderId") or ""
    amount = request.args.get("amount")

    guard = ConfirmationGuard.from_config(order_reference, browser_session_id(), current_app.config)
    result = "in_progress"
    if guard.acquire():
        succeeded = False
        try:
            result = confirm_payment(payment_key, order_reference, amount)["status"]
            succeeded = True
        except GatewayError as e:
            return jsonify({
                "ok": False,
                "code": e.code,
                "message": e.message,
                "description": describe_error(e.code),
                "redirect": "/payment/fail?" + urlencode({"code": e.code, "message": e.message}),
            }), 400
        except CheckoutError as e:
            return jsonify({"ok": False, "error": e.message}), e.status_code
        finally:
            # kept for a short hold after a success, dropped after a failure
            guard.release(succeeded)
    else:
        current_app.logger.info("Confirmation for %s already running in this session, re-reading order", order_reference)

    order = _read_back(order_reference)
    if order is None:
        return jsonify({"ok": False, "error": "Order not found."}), 404
    db.session.refresh(order)
    return jsonify({"ok": True, "result": result, "order": order.to_dict()})


@payment_bp.get("/payment/fail")
def payment_fail():
    code = request.args.get("code") or UNKNOWN_ERROR
    message = request.args.get("message") or describe_error(UNKNOWN_ERROR)
    return jsonify({
        "ok": False,
        "code": code,
        "message": message,
        "description": describe_error(code),
    })


@payment_bp.get("/api/payments/client-config")
def client_config():
    # public key only; the secret key stays on the server
    return jsonify({"ok": True, "clientKey": current_app.config.get("TOSS_CLIENT_KEY")})
