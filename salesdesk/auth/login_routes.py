# salesdesk/auth/login_routes.py
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from salesdesk.extensions import db
from salesdesk.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/admin")


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or request.form
    username = (data.get("username") or "").strip()
    password = (data.get("password") or "").strip()

    user = db.session.scalar(db.select(User).where(User.username == username))

    # check_password accepts bcrypt and legacy Werkzeug hashes
    if not user or not user.check_password(password):
        return jsonify({"ok": False, "error": "Invalid credentials."}), 401
    if not login_user(user):
        return jsonify({"ok": False, "error": "Account is disabled."}), 403

    return jsonify({
        "ok": True,
        "user": {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "employeeId": user.employee_id,
        },
    })


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify({
        "ok": True,
        "user": {
            "id": current_user.id,
            "username": current_user.username,
            "role": current_user.role,
            "employeeId": current_user.employee_id,
        },
    })
