# salesdesk/models/employee.py
from salesdesk.extensions import db
from salesdesk.timeutil import utcnow


class Employee(db.Model):
    __tablename__ = "employee"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    referral_code = db.Column(db.String(20), unique=True, nullable=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=True)
    hire_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")  # active | inactive

    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship("User", back_populates="employee", uselist=False)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "referralCode": self.referral_code,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "hireDate": self.hire_date.isoformat() if self.hire_date else None,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return f"<Employee {self.code} {self.name}>"
