# salesdesk/models/user.py
from salesdesk.extensions import db, bcrypt
from flask_login import UserMixin
from werkzeug.security import check_password_hash as wz_check_password_hash


class User(db.Model, UserMixin):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    password_hash = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="employee")  # admin | employee
    is_active_flag = db.Column("is_active", db.Boolean, nullable=False, default=True)

    employee_id = db.Column(db.Integer, db.ForeignKey("employee.id"), nullable=True)
    employee = db.relationship("Employee", back_populates="user")

    # --- Password handling ---------------------------------------------------
    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.generate_password_hash(password).decode("utf-8")

    def check_password(self, password: str) -> bool:
        try:
            if bcrypt.check_password_hash(self.password_hash, password):
                return True
        except ValueError:
            pass  # not a bcrypt hash, try the Werkzeug format below
        try:
            return wz_check_password_hash(self.password_hash, password)
        except ValueError:
            return False

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_active(self) -> bool:
        # Flask-Login refuses to log in inactive users
        return bool(self.is_active_flag)

    def get_id(self):
        return str(self.id)

    def __repr__(self):
        return f"<User {self.username} role={self.role}>"
