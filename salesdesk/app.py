# salesdesk/app.py
import logging

# Show INFO logs even outside the werkzeug access log
logging.basicConfig(level=logging.INFO)

from flask import Flask  # noqa: E402

from salesdesk.config import Config  # noqa: E402

# Extensions
from salesdesk.extensions import bcrypt, cors, db, init_mail, login_manager, migrate  # noqa: E402

# Blueprints
from salesdesk.admin import admin_bp  # noqa: E402
from salesdesk.auth import auth_bp  # noqa: E402
from salesdesk.api.routes.checkout_routes import order_bp, product_bp  # noqa: E402
from salesdesk.api.routes.employee_routes import me_bp  # noqa: E402
from salesdesk.api.routes.payment_routes import payment_bp  # noqa: E402
from salesdesk.commands import register_commands  # noqa: E402
from salesdesk import models as _models  # noqa: E402,F401


def create_app(config_class=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    bcrypt.init_app(app)
    init_mail(app)

    cors.init_app(
        app,
        resources={
            r"/api/*": {"origins": app.config["CORS_ORIGINS"], "supports_credentials": True},
            r"/payment*": {"origins": app.config["CORS_ORIGINS"], "supports_credentials": True},
        },
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(order_bp)
    app.register_blueprint(product_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(me_bp)

    register_commands(app)

    if not app.config.get("TOSS_SECRET_KEY"):
        app.logger.warning("TOSS_SECRET_KEY is not set; card confirmations will fail.")
    if not app.config.get("SERVICE_ROLE_KEY"):
        app.logger.info("SERVICE_ROLE_KEY is not set; credential reset is disabled.")

    @app.get("/healthz")
    def healthz():
        return {"ok": True}, 200

    return app


# For gunicorn
app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
