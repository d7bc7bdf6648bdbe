from flask import current_app, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from salesdesk.extensions import db
from salesdesk.models import Employee, User
from salesdesk.services.codes import generate_referral_code, unique_code

from . import admin_bp
from .utils import parse_date

EMPLOYEE_STATUSES = ("active", "inactive")
MIN_PASSWORD_LENGTH = 6


@admin_bp.get("/employees")
def employees_index():
    status = (request.args.get("status") or "all").strip()
    search = (request.args.get("q") or "").strip()

    stmt = db.select(Employee).order_by(Employee.created_at.desc(), Employee.id.desc())
    if status in EMPLOYEE_STATUSES:
        stmt = stmt.where(Employee.status == status)
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Employee.name.ilike(like), Employee.code.ilike(like)))
    rows = db.session.execute(stmt).scalars()
    return jsonify({"ok": True, "employees": [e.to_dict() for e in rows]})


@admin_bp.post("/employees")
def employees_create():
    """Create the salesperson and their login account together."""
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip()
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    status = (data.get("status") or "active").strip()

    if not (code and name and email):
        return jsonify({"ok": False, "error": "code, name and email are required."}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"ok": False, "error": f"Password must have at least {MIN_PASSWORD_LENGTH} characters."}), 400
    if status not in EMPLOYEE_STATUSES:
        return jsonify({"ok": False, "error": "status must be active or inactive."}), 400
    if db.session.scalar(db.select(Employee.id).where(Employee.email == email)):
        return jsonify({"ok": False, "error": "This e-mail is already registered."}), 409

    try:
        emp = Employee(
            code=code,
            referral_code=unique_code(Employee.referral_code, generate_referral_code),
            name=name,
            phone=(data.get("phone") or "").strip() or None,
            email=email,
            hire_date=parse_date(data.get("hireDate")),
            status=status,
        )
        db.session.add(emp)
        db.session.flush()

        user = User(username=email, email=email, role="employee", employee_id=emp.id,
                    is_active_flag=(status == "active"))
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"ok": False, "error": "Employee code or e-mail already exists."}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("employee create failed")
        return jsonify({"ok": False, "error": str(e)}), 500

    return jsonify({"ok": True, "employee": emp.to_dict()}), 201


@admin_bp.put("/employees/<int:employee_id>")
def employees_update(employee_id: int):
    emp = db.session.get(Employee, employee_id)
    if emp is None:
        return jsonify({"ok": False, "error": "Employee not found."}), 404

    data = request.get_json(silent=True) or {}
    status = (data.get("status") or emp.status).strip()
    if status not in EMPLOYEE_STATUSES:
        return jsonify({"ok": False, "error": "status must be active or inactive."}), 400

    # code and name cannot be blanked; phone and email can
    for field in ("code", "name"):
        value = (data.get(field) or "").strip()
        if value:
            setattr(emp, field, value)
    for field in ("phone", "email"):
        if field in data:
            setattr(emp, field, (data.get(field) or "").strip() or None)
    if "hireDate" in data:
        emp.hire_date = parse_date(data.get("hireDate"))

    status_changed = status != emp.status
    emp.status = status
    if not emp.referral_code:
        emp.referral_code = unique_code(Employee.referral_code, generate_referral_code)

    # inactive salespeople can no longer log in
    if status_changed and emp.user is not None:
        emp.user.is_active_flag = status == "active"

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"ok": False, "error": "Employee code or e-mail already exists."}), 409
    return jsonify({"ok": True, "employee": emp.to_dict()})
