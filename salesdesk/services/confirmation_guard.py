# salesdesk/services/confirmation_guard.py
"""
Marker that keeps one browser session from running the gateway confirmation
twice for the same order reference (reloads, a second tab, double redirects).

The marker lives in the database so that a concurrent request can see it
while the first one is still waiting on the gateway. It is kept for a short
hold after a success and dropped at once after a failure so the buyer can
retry.

This only saves a round trip. The conditional UPDATE in payment_confirm is
what actually prevents double confirmation.
"""
from __future__ import annotations

import secrets
import time
from datetime import timedelta

from flask import session
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from salesdesk.extensions import db
from salesdesk.models import ConfirmationMarker
from salesdesk.timeutil import utcnow

SESSION_ID_KEY = "confirm_sid"


def browser_session_id() -> str:
    """Stable id for the calling browser, stored in the signed session cookie."""
    sid = session.get(SESSION_ID_KEY)
    if not sid:
        sid = secrets.token_urlsafe(24)
        session[SESSION_ID_KEY] = sid
    return sid


class ConfirmationGuard:
    def __init__(
        self,
        order_reference: str,
        session_id: str,
        wait_seconds: float = 1.0,
        hold_seconds: float = 5.0,
        in_flight_seconds: float = 60.0,
        sleep=time.sleep,
    ):
        self.order_reference = (order_reference or "")[:100]
        self.session_id = session_id
        self.wait_seconds = wait_seconds
        self.hold_seconds = hold_seconds
        self.in_flight_seconds = in_flight_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, order_reference: str, session_id: str, config) -> "ConfirmationGuard":
        return cls(
            order_reference,
            session_id,
            wait_seconds=float(config.get("DUPLICATE_CONFIRM_WAIT_SECONDS", 1.0)),
            hold_seconds=float(config.get("DUPLICATE_CONFIRM_HOLD_SECONDS", 5.0)),
            # a marker never outlives the gateway call it guards
            in_flight_seconds=float(config.get("GATEWAY_TIMEOUT", 30)) * 2,
        )

    def _mine(self):
        return (
            ConfirmationMarker.session_id == self.session_id,
            ConfirmationMarker.order_reference == self.order_reference,
        )

    def is_marked(self) -> bool:
        row = db.session.execute(
            select(ConfirmationMarker.id).where(*self._mine(), ConfirmationMarker.expires_at > utcnow())
        ).first()
        return row is not None

    def acquire(self) -> bool:
        """
        True when this call may run the confirmation. False when another call
        from the same session holds the marker; in that case wait briefly so
        the caller can re-read the order instead.
        """
        now = utcnow()
        db.session.execute(delete(ConfirmationMarker).where(ConfirmationMarker.expires_at <= now))
        db.session.add(ConfirmationMarker(
            session_id=self.session_id,
            order_reference=self.order_reference,
            expires_at=now + timedelta(seconds=self.in_flight_seconds),
        ))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if self.wait_seconds:
                self._sleep(self.wait_seconds)
            return False
        return True

    def release(self, succeeded: bool) -> None:
        if succeeded:
            db.session.execute(
                update(ConfirmationMarker)
                .where(*self._mine())
                .values(expires_at=utcnow() + timedelta(seconds=self.hold_seconds))
            )
        else:
            db.session.execute(delete(ConfirmationMarker).where(*self._mine()))
        db.session.commit()
