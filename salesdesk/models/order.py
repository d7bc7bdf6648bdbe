# salesdesk/models/order.py
from sqlalchemy.orm import validates

from salesdesk.extensions import db
from salesdesk.timeutil import epoch_millis, utcnow

STATUS_PENDING_PAYMENT = "pending_payment"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
# written by an older checkout path; read as pending_payment
LEGACY_STATUS_PENDING = "pending"

ORDER_STATUSES = (STATUS_PENDING_PAYMENT, STATUS_COMPLETED, STATUS_CANCELLED)
PENDING_STATUSES = (STATUS_PENDING_PAYMENT, LEGACY_STATUS_PENDING)

PAYMENT_CARD = "card"
PAYMENT_BANK_TRANSFER = "bank_transfer"
PAYMENT_TYPES = (PAYMENT_CARD, PAYMENT_BANK_TRANSFER)

ORDER_REFERENCE_PREFIX = "ORDER-"


class Order(db.Model):
    __tablename__ = "order"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_quantity_positive"),
        db.CheckConstraint("total_amount >= 0", name="ck_order_total_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employee.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_amount = db.Column(db.Integer, nullable=False)
    payment_type = db.Column(db.String(20), nullable=False, default=PAYMENT_CARD)
    status = db.Column(db.String(32), nullable=False, default=STATUS_PENDING_PAYMENT, index=True)

    # buyer
    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(40), nullable=False)
    customer_address = db.Column(db.Text, nullable=True)
    image_refs = db.Column(db.JSON, nullable=True)

    # gateway / reconciliation correlation
    payment_key = db.Column(db.String(200), unique=True, nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    payment_id = db.Column(db.String(64), nullable=True)
    payment_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", lazy="joined")
    employee = db.relationship("Employee", lazy="joined")

    @validates("status")
    def _validate_status(self, key, value):
        if value == LEGACY_STATUS_PENDING:
            return STATUS_PENDING_PAYMENT
        if value not in ORDER_STATUSES:
            raise ValueError(f"Unknown order status: {value!r}")
        return value

    @validates("payment_type")
    def _validate_payment_type(self, key, value):
        if value not in PAYMENT_TYPES:
            raise ValueError(f"Unknown payment type: {value!r}")
        return value

    @validates("total_amount")
    def _validate_total_amount(self, key, value):
        if self.total_amount is not None and value != self.total_amount:
            raise ValueError("total_amount is fixed at order creation")
        return value

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if value is None or int(value) <= 0:
            raise ValueError("quantity must be a positive integer")
        return int(value)

    @property
    def normalized_status(self) -> str:
        return STATUS_PENDING_PAYMENT if self.status == LEGACY_STATUS_PENDING else self.status

    @property
    def order_reference(self) -> str:
        created = self.created_at or utcnow()
        return f"{ORDER_REFERENCE_PREFIX}{self.id}-{epoch_millis(created)}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderReference": self.order_reference,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "employeeId": self.employee_id,
            "employeeName": self.employee.name if self.employee else None,
            "quantity": self.quantity,
            "totalAmount": self.total_amount,
            "paymentType": self.payment_type,
            "status": self.normalized_status,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "customerAddress": self.customer_address,
            "imageRefs": self.image_refs or [],
            "paymentKey": self.payment_key,
            "paymentMethod": self.payment_method,
            "paymentId": self.payment_id,
            "paymentDate": self.payment_date.isoformat() if self.payment_date else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Order #{self.id} {self.payment_type} {self.status} {self.total_amount}>"
