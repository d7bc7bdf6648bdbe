# salesdesk/models/sale.py
from sqlalchemy.orm import validates

from salesdesk.extensions import db
from salesdesk.timeutil import utcnow


class Sale(db.Model):
    """Offline sale entered by staff. Always final, never pending."""

    __tablename__ = "sale"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employee.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    sale_date = db.Column(db.Date, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    # unit price/cost captured at entry; older rows may lack them
    sale_price = db.Column(db.Integer, nullable=True)
    sale_cost = db.Column(db.Integer, nullable=True)

    customer_name = db.Column(db.String(120), nullable=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    employee = db.relationship("Employee", lazy="joined")
    product = db.relationship("Product", lazy="joined")

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if value is None or int(value) <= 0:
            raise ValueError("quantity must be a positive integer")
        return int(value)

    @property
    def unit_price(self) -> int:
        if self.sale_price is not None:
            return self.sale_price
        return self.product.price if self.product else 0

    @property
    def unit_cost(self) -> int:
        if self.sale_cost is not None:
            return self.sale_cost
        return self.product.cost if self.product else 0

    @property
    def amount(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "employeeName": self.employee.name if self.employee else None,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "saleDate": self.sale_date.isoformat() if self.sale_date else None,
            "quantity": self.quantity,
            "salePrice": self.sale_price,
            "saleCost": self.sale_cost,
            "amount": self.amount,
            "customerName": self.customer_name,
            "note": self.note,
        }

    def __repr__(self):
        return f"<Sale #{self.id} emp={self.employee_id} {self.sale_date}>"
