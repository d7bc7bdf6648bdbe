# salesdesk/auth/credential_routes.py
"""
Admin-initiated credential reset for salesperson accounts.

Reset tokens are signed with SERVICE_ROLE_KEY. Without that key the feature
is switched off and the endpoints answer 503.
"""
from flask import current_app, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from salesdesk.api.utils.email import send_email
from salesdesk.auth.decorators import admin_required
from salesdesk.auth.login_routes import auth_bp
from salesdesk.extensions import db
from salesdesk.models import Employee, User

MIN_PASSWORD_LENGTH = 8


def _get_serializer() -> URLSafeTimedSerializer | None:
    key = current_app.config.get("SERVICE_ROLE_KEY")
    if not key:
        return None
    salt = current_app.config.get("PASSWORD_RESET_SALT", "salesdesk-credential-reset")
    return URLSafeTimedSerializer(secret_key=key, salt=salt)


def _unavailable():
    current_app.logger.warning("Credential reset requested but SERVICE_ROLE_KEY is not configured")
    return jsonify({"ok": False, "error": "Credential reset is not available on this server."}), 503


@auth_bp.post("/employees/<int:employee_id>/reset-credentials")
@admin_required
def reset_credentials(employee_id: int):
    s = _get_serializer()
    if s is None:
        return _unavailable()

    emp = db.session.get(Employee, employee_id)
    if emp is None or emp.user is None:
        return jsonify({"ok": False, "error": "Salesperson has no login account."}), 404

    user = emp.user
    recipient = user.email or emp.email
    if not recipient:
        return jsonify({"ok": False, "error": "No e-mail address on file."}), 400

    token = s.dumps({"uid": str(user.id)})
    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    link = f"{base}/reset-password/{token}"
    try:
        send_email(
            subject="Reset your password",
            recipients=[recipient],
            body=(
                f"Hello {emp.name},\n\n"
                "an administrator started a password reset for your account.\n"
                f"Set a new password here: {link}\n\n"
                "The link expires in one hour."
            ),
        )
    except Exception:
        current_app.logger.exception("Reset e-mail for user %s failed", user.id)
        return jsonify({"ok": False, "error": "Could not send the reset e-mail."}), 500

    current_app.logger.info("Credential reset sent for user %s", user.id)
    return jsonify({"ok": True, "sentTo": recipient})


@auth_bp.post("/reset-password/<token>")
def reset_password(token: str):
    s = _get_serializer()
    if s is None:
        return _unavailable()

    data = request.get_json(silent=True) or {}
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"ok": False, "error": f"Password must have at least {MIN_PASSWORD_LENGTH} characters."}), 400

    max_age = int(current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600))
    try:
        uid = s.loads(token, max_age=max_age).get("uid")
    except SignatureExpired:
        return jsonify({"ok": False, "error": "The reset link has expired."}), 400
    except BadSignature:
        return jsonify({"ok": False, "error": "The reset link is invalid."}), 400

    user = db.session.get(User, int(uid)) if uid and str(uid).isdigit() else None
    if user is None:
        return jsonify({"ok": False, "error": "Account not found."}), 404

    user.set_password(password)
    db.session.commit()
    return jsonify({"ok": True})
