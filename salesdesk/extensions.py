# salesdesk/extensions.py
from __future__ import annotations

import socket
from urllib.parse import urlsplit

from flask import jsonify
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Extension singletons, bound to the app in create_app()
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
bcrypt = Bcrypt()
cors = CORS()
mail = Mail()

TRUTHY = {"1", "true", "t", "yes", "y", "on"}
# SMTP port by transport: (ssl, tls) -> port
DEFAULT_SMTP_PORTS = {(True, False): 465, (False, True): 587, (False, False): 25}


@login_manager.user_loader
def load_user(user_id):
    from salesdesk.models.user import User  # models import db from here

    if not str(user_id).isdigit():
        return None
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"ok": False, "error": "Login required."}), 401


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUTHY


def _smtp_host(raw: str | None) -> str:
    """'smtps://mail.example.com:465/x' -> 'mail.example.com'."""
    raw = (raw or "").strip()
    if not raw:
        return ""
    parts = urlsplit(raw if "://" in raw else f"//{raw}")
    return parts.hostname or ""


def init_mail(app) -> None:
    """
    Normalise the MAIL_* settings before binding Flask-Mail so a bad host,
    a conflicting SSL/TLS pair or a missing port shows up in the startup log
    instead of on the first order e-mail.
    """
    cfg = app.config
    log = app.logger

    host = _smtp_host(cfg.get("MAIL_SERVER")) or "localhost"
    if host != cfg.get("MAIL_SERVER"):
        log.warning("MAIL_SERVER normalised to %r", host)
    cfg["MAIL_SERVER"] = host

    use_ssl = _as_bool(cfg.get("MAIL_USE_SSL"))
    use_tls = _as_bool(cfg.get("MAIL_USE_TLS")) and not use_ssl
    cfg["MAIL_USE_SSL"], cfg["MAIL_USE_TLS"] = use_ssl, use_tls

    if not str(cfg.get("MAIL_PORT") or "").isdigit():
        cfg["MAIL_PORT"] = DEFAULT_SMTP_PORTS[(use_ssl, use_tls)]
        log.info("MAIL_PORT missing or invalid, using %s", cfg["MAIL_PORT"])
    cfg["MAIL_PORT"] = int(cfg["MAIL_PORT"])

    cfg["MAIL_DEFAULT_SENDER"] = cfg.get("MAIL_DEFAULT_SENDER") or cfg.get("MAIL_USERNAME")

    if not cfg.get("MAIL_SUPPRESS_SEND"):
        try:
            socket.getaddrinfo(host, cfg["MAIL_PORT"], proto=socket.IPPROTO_TCP)
        except OSError as e:
            log.error("MAIL_SERVER %r does not resolve: %s", host, e)

    log.info(
        "mail: %s:%s ssl=%s tls=%s sender=%s suppress=%s",
        host, cfg["MAIL_PORT"], use_ssl, use_tls,
        cfg["MAIL_DEFAULT_SENDER"], bool(cfg.get("MAIL_SUPPRESS_SEND")),
    )
    mail.init_app(app)
