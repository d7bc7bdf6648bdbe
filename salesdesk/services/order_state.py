# salesdesk/services/order_state.py
"""
Order lifecycle.

    pending_payment -> completed   (gateway confirmation or admin bank-transfer confirm)
    pending_payment -> cancelled   (admin cancel or overdue bank-transfer sweep)

completed and cancelled are terminal. Every write goes through a conditional
UPDATE guarded on the current status so two racing requests cannot both win.
"""
from __future__ import annotations

import logging

from sqlalchemy import update

from salesdesk.extensions import db
from salesdesk.models import Order
from salesdesk.models.order import (
    LEGACY_STATUS_PENDING,
    PAYMENT_BANK_TRANSFER,
    PAYMENT_CARD,
    PAYMENT_TYPES,
    PENDING_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_PENDING_PAYMENT,
)
from salesdesk.services.errors import ConflictError, ValidationError
from salesdesk.timeutil import utcnow

log = logging.getLogger(__name__)

TRANSITIONS = {
    STATUS_PENDING_PAYMENT: frozenset({STATUS_COMPLETED, STATUS_CANCELLED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}

# fields a completed order must carry, per payment type
CONFIRMATION_FIELDS = {
    PAYMENT_CARD: ("payment_key", "payment_method", "payment_date"),
    PAYMENT_BANK_TRANSFER: ("payment_id", "payment_date"),
}


def normalize_status(status: str | None) -> str | None:
    if status == LEGACY_STATUS_PENDING:
        return STATUS_PENDING_PAYMENT
    return status


def can_transition(current: str, target: str) -> bool:
    return normalize_status(target) in TRANSITIONS.get(normalize_status(current), ())


def validate_record(order: Order) -> None:
    """Reject (status, payment type) combinations that cannot exist."""
    if order.payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"Unknown payment type {order.payment_type!r}.")
    status = normalize_status(order.status)
    if status not in TRANSITIONS:
        raise ValidationError(f"Unknown order status {order.status!r}.")
    if status == STATUS_COMPLETED:
        missing = [f for f in CONFIRMATION_FIELDS[order.payment_type] if getattr(order, f) is None]
        if missing:
            raise ValidationError(
                f"Completed {order.payment_type} order is missing {', '.join(missing)}."
            )


def transition(order_id: int, target: str, *, extra_where=(), **values) -> bool:
    """
    Move a pending order to ``target`` in one conditional UPDATE.

    Returns False when no row matched, i.e. the order was no longer pending
    (or failed one of ``extra_where``). The caller owns the commit.
    """
    if not can_transition(STATUS_PENDING_PAYMENT, target):
        raise ConflictError(f"Orders cannot move to {target!r}.")
    if target == STATUS_COMPLETED and not values.get("payment_date"):
        values["payment_date"] = utcnow()

    stmt = (
        update(Order)
        .where(Order.id == order_id, Order.status.in_(PENDING_STATUSES), *extra_where)
        .values(status=target, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 0:
        log.info("Order %s not moved to %s: no longer pending", order_id, target)
        return False
    log.info("Order %s -> %s", order_id, target)
    return True
