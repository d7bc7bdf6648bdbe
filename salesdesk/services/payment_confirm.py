# salesdesk/services/payment_confirm.py
"""
Server-side confirmation of a card payment.

The gateway confirm call charges the buyer and is not idempotent on the
remote side, so it is issued at most once per order: an order that is already
completed or already carries a payment key short-circuits before the call,
and the final write is a conditional UPDATE that only succeeds while the
order is still pending and unconfirmed.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from salesdesk.api.utils.telegram import send_telegram_message
from salesdesk.extensions import db
from salesdesk.models import Order
from salesdesk.models.order import ORDER_REFERENCE_PREFIX, STATUS_CANCELLED, STATUS_COMPLETED
from salesdesk.services import order_state
from salesdesk.services.errors import (
    ConflictError,
    GatewayError,
    MissingParameters,
    OrderNotFound,
    PaymentRecordingError,
    ValidationError,
)
from salesdesk.services.gateway import PaymentGateway, TossPaymentsGateway
from salesdesk.services.order_completed_hook import on_order_completed
from salesdesk.timeutil import utcnow

log = logging.getLogger(__name__)

ALREADY_COMPLETED_MESSAGE = "This order has already been processed."
# gateway answer when the same paymentKey was confirmed before
ALREADY_PROCESSED_CODE = "ALREADY_PROCESSED_PAYMENT"


def get_gateway() -> PaymentGateway:
    """The app-wide gateway; tests swap ``app.extensions['payment_gateway']``."""
    gateway = current_app.extensions.get("payment_gateway")
    if gateway is None:
        gateway = TossPaymentsGateway.from_config(current_app.config)
        current_app.extensions["payment_gateway"] = gateway
    return gateway


def parse_order_reference(order_reference: str) -> str:
    """'ORDER-482-1733999999000' -> '482'."""
    return str(order_reference).removeprefix(ORDER_REFERENCE_PREFIX).split("-")[0]


def whole_amount(value) -> int:
    """
    Amount as the gateway expects it. Anything that is not a whole number is
    refused rather than truncated, so a mismatch still reaches the gateway.
    """
    if isinstance(value, bool):
        raise ValidationError("Amount must be a whole number.")
    if isinstance(value, int):
        return value
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError("Amount must be a whole number.")
    if not number.is_finite() or number != number.to_integral_value():
        raise ValidationError("Amount must be a whole number.")
    return int(number)


def _already_completed() -> dict:
    return {"status": "already_completed", "message": ALREADY_COMPLETED_MESSAGE}


def _alert_unrecorded(order_id, order_reference: str, payment_key: str, reason: str) -> None:
    log.critical(
        "PAID BUT NOT RECORDED: order=%s reference=%s paymentKey=%s reason=%s",
        order_id, order_reference, payment_key, reason,
    )
    try:
        send_telegram_message(
            "<b>Payment confirmed but order not recorded</b>\n"
            f"Order: {order_id}\nReference: {order_reference}\n"
            f"Payment key: {payment_key}\nReason: {reason}"
        )
    except Exception:
        log.exception("Telegram alert for order %s failed", order_id)


def confirm_payment(payment_key, order_reference, amount, gateway: PaymentGateway | None = None) -> dict:
    missing = [
        name for name, value in (("paymentKey", payment_key), ("orderId", order_reference), ("amount", amount))
        if value in (None, "")
    ]
    if missing:
        raise MissingParameters(missing)

    amount = whole_amount(amount)

    parsed_id = parse_order_reference(order_reference)
    log.info("Payment confirmation: reference=%s parsedId=%s amount=%s", order_reference, parsed_id, amount)

    if not parsed_id.isdigit():
        raise OrderNotFound(parsed_id)
    order = db.session.get(Order, int(parsed_id))
    if order is None:
        raise OrderNotFound(parsed_id)

    if order.status == STATUS_COMPLETED or order.payment_key:
        log.info("Order %s already completed, gateway not called", order.id)
        return _already_completed()
    if order.status == STATUS_CANCELLED:
        raise ConflictError(f"Order {order.id} was cancelled and cannot be paid.")

    if order.total_amount != amount:
        # the gateway compares against what was actually charged
        log.warning("Order %s amount mismatch: stored=%s claimed=%s", order.id, order.total_amount, amount)

    gateway = gateway or get_gateway()
    try:
        confirmation = gateway.confirm(payment_key, order_reference, amount, idempotency_key=order_reference)
    except GatewayError as e:
        if e.code == ALREADY_PROCESSED_CODE:
            db.session.refresh(order)
            if order.status == STATUS_COMPLETED:
                return _already_completed()
        raise

    order_id = order.id
    try:
        moved = order_state.transition(
            order_id,
            STATUS_COMPLETED,
            extra_where=(Order.payment_key.is_(None),),
            payment_key=payment_key,
            payment_method=confirmation.method,
            payment_date=utcnow(),
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        _alert_unrecorded(order_id, order_reference, payment_key, str(e))
        raise PaymentRecordingError(order_id, order_reference, payment_key)

    db.session.refresh(order)
    if not moved:
        if order.status == STATUS_COMPLETED:
            return _already_completed()
        _alert_unrecorded(order_id, order_reference, payment_key, f"order is {order.status}")
        raise PaymentRecordingError(order_id, order_reference, payment_key)

    log.info("Order %s completed via %s", order_id, confirmation.method)

    try:
        on_order_completed(order_id)
    except Exception:
        log.exception("Completion hook failed for order %s", order_id)

    return {**confirmation.raw, "status": "success"}
