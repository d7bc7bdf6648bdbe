# salesdesk/models/confirmation_marker.py
from salesdesk.extensions import db


class ConfirmationMarker(db.Model):
    """A card confirmation running (or just finished) for one browser session."""

    __tablename__ = "confirmation_marker"
    __table_args__ = (
        db.UniqueConstraint("session_id", "order_reference", name="uq_confirmation_marker_session_ref"),
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), nullable=False)
    order_reference = db.Column(db.String(100), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ConfirmationMarker {self.session_id} {self.order_reference} until {self.expires_at}>"
