from flask import Blueprint, current_app, jsonify
from flask_login import current_user

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.before_request
def _require_admin():
    if not current_user.is_authenticated:
        return current_app.login_manager.unauthorized()
    if not current_user.is_admin:
        return jsonify({"ok": False, "error": "Admin role required."}), 403
    return None


# importing attaches the view functions to admin_bp
from . import order_routes        # noqa: E402,F401  online orders + bank transfers
from . import sales_routes        # noqa: E402,F401  offline sales
from . import employee_routes     # noqa: E402,F401
from . import product_routes      # noqa: E402,F401
from . import dashboard_routes    # noqa: E402,F401  dashboard + statistics
from . import commission_routes   # noqa: E402,F401
