# salesdesk/models/commission.py
from salesdesk.extensions import db
from salesdesk.timeutil import utcnow


class Commission(db.Model):
    """Monthly payout record, one per (employee, YYYY-MM)."""

    __tablename__ = "commission"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "year_month", name="uq_commission_employee_month"),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employee.id"), nullable=False, index=True)
    year_month = db.Column(db.String(7), nullable=False)  # YYYY-MM

    total_sales = db.Column(db.Float, nullable=False, default=0)
    total_cost = db.Column(db.Float, nullable=False, default=0)
    sales_count = db.Column(db.Integer, nullable=False, default=0)
    base_commission = db.Column(db.Float, nullable=False, default=0)
    bonus_commission = db.Column(db.Float, nullable=False, default=0)
    total_commission = db.Column(db.Float, nullable=False, default=0)

    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_date = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    employee = db.relationship("Employee", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "yearMonth": self.year_month,
            "totalSales": self.total_sales,
            "totalCost": self.total_cost,
            "salesCount": self.sales_count,
            "baseCommission": self.base_commission,
            "bonusCommission": self.bonus_commission,
            "totalCommission": self.total_commission,
            "isPaid": self.is_paid,
            "paidDate": self.paid_date.isoformat() if self.paid_date else None,
        }

    def __repr__(self):
        return f"<Commission emp={self.employee_id} {self.year_month} paid={self.is_paid}>"
