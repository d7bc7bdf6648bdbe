# salesdesk/auth/__init__.py

# One blueprint object shared by every auth module.
from . import login_routes as _login

auth_bp = _login.auth_bp

# importing attaches the view functions to auth_bp
from . import credential_routes  # noqa: F401,E402
