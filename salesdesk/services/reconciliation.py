# salesdesk/services/reconciliation.py
"""
Admin handling of bank-transfer orders: confirm receipt, cancel, and the
24-hour overdue flag. The flag is computed on read; nothing cancels an order
unless an admin (or the explicit sweep command) does it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from salesdesk.extensions import db
from salesdesk.models import Order
from salesdesk.models.order import (
    PAYMENT_BANK_TRANSFER,
    PENDING_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
)
from salesdesk.services import order_state
from salesdesk.services.errors import ConflictError, OrderNotFound, ValidationError
from salesdesk.timeutil import epoch_millis, utcnow

log = logging.getLogger(__name__)

DEFAULT_EXPIRY_HOURS = 24


def hours_elapsed(order: Order, now: datetime | None = None) -> float:
    now = now or utcnow()
    return (now - order.created_at).total_seconds() / 3600


def is_expired(order: Order, now: datetime | None = None, expiry_hours: int = DEFAULT_EXPIRY_HOURS) -> bool:
    """Pending bank-transfer order at least ``expiry_hours`` old."""
    if order.payment_type != PAYMENT_BANK_TRANSFER:
        return False
    if order.status not in PENDING_STATUSES:
        return False
    return hours_elapsed(order, now) >= expiry_hours


def order_view(order: Order, now: datetime | None = None, expiry_hours: int = DEFAULT_EXPIRY_HOURS) -> dict:
    data = order.to_dict()
    data["hoursElapsed"] = round(hours_elapsed(order, now), 1)
    data["isExpired"] = is_expired(order, now, expiry_hours)
    return data


def _require_ack(acknowledge) -> None:
    if acknowledge is not True:
        raise ValidationError("This action is irreversible; send acknowledge=true to proceed.")


def _load(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


def confirm_bank_transfer(order_id: int, acknowledge=False) -> Order:
    _require_ack(acknowledge)
    order = _load(order_id)
    if order.payment_type != PAYMENT_BANK_TRANSFER:
        raise ValidationError("Only bank-transfer orders can be confirmed manually.")

    now = utcnow()
    moved = order_state.transition(
        order_id,
        STATUS_COMPLETED,
        extra_where=(Order.payment_type == PAYMENT_BANK_TRANSFER,),
        payment_id=f"PAY_{epoch_millis(now)}",
        payment_date=now,
    )
    if not moved:
        db.session.rollback()
        raise ConflictError(f"Order {order_id} was already processed.")
    db.session.commit()
    db.session.refresh(order)
    log.info("Bank transfer for order %s confirmed as %s", order_id, order.payment_id)
    return order


def cancel_order(order_id: int, acknowledge=False) -> Order:
    _require_ack(acknowledge)
    order = _load(order_id)
    if not order_state.transition(order_id, STATUS_CANCELLED):
        db.session.rollback()
        raise ConflictError(f"Order {order_id} was already processed.")
    db.session.commit()
    db.session.refresh(order)
    log.info("Order %s cancelled", order_id)
    return order


def overdue_orders(now: datetime | None = None, expiry_hours: int = DEFAULT_EXPIRY_HOURS) -> list[Order]:
    cutoff = (now or utcnow()) - timedelta(hours=expiry_hours)
    stmt = (
        db.select(Order)
        .where(
            Order.payment_type == PAYMENT_BANK_TRANSFER,
            Order.status.in_(PENDING_STATUSES),
            Order.created_at <= cutoff,
        )
        .order_by(Order.created_at)
    )
    return list(db.session.execute(stmt).unique().scalars())


def expire_overdue(now: datetime | None = None, expiry_hours: int = DEFAULT_EXPIRY_HOURS,
                   dry_run: bool = False) -> list[int]:
    """Cancel overdue bank-transfer orders. Only runs when called explicitly."""
    candidates = overdue_orders(now, expiry_hours)
    if dry_run:
        return [o.id for o in candidates]

    cancelled = []
    for order in candidates:
        if order_state.transition(order.id, STATUS_CANCELLED, extra_where=(Order.payment_key.is_(None),)):
            cancelled.append(order.id)
    db.session.commit()
    log.info("Expired %d overdue bank-transfer orders", len(cancelled))
    return cancelled
