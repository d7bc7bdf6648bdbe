# salesdesk/auth/decorators.py
from functools import wraps

from flask import current_app, jsonify
from flask_login import current_user


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        if not current_user.is_admin:
            return jsonify({"ok": False, "error": "Admin role required."}), 403
        return view(*args, **kwargs)
    return wrapper


def employee_required(view):
    """Logged-in user linked to a salesperson record."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        if current_user.employee_id is None:
            return jsonify({"ok": False, "error": "No salesperson profile linked to this account."}), 403
        return view(*args, **kwargs)
    return wrapper
