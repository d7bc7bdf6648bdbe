# salesdesk/config.py
import os
from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))

INSTANCE_DIR = os.path.join(BASE_DIR, "instance")


def _env(key: str, default=None):
    v = os.getenv(key)
    return v if v not in (None, "", "None") else default


def _env_bool(key: str, default: bool = False) -> bool:
    v = os.getenv(key)
    if v in (None, "", "None"):
        return default
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _env_list(key: str, default: str = "") -> list[str]:
    raw = _env(key, default) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


def _resolve_sqlite_uri(db_url: str | None) -> str:
    if not db_url:
        os.makedirs(INSTANCE_DIR, exist_ok=True)
        db_path = os.path.join(INSTANCE_DIR, "salesdesk.db")
        return "sqlite:///" + db_path.replace("\\", "/")

    if db_url.startswith("sqlite:///"):
        raw_path = db_url.replace("sqlite:///", "", 1)
        if raw_path == ":memory:":
            return db_url
        if not os.path.isabs(raw_path):
            raw_path = os.path.join(BASE_DIR, raw_path)
        db_path = os.path.normpath(raw_path)
        os.makedirs(os.path.dirname(db_path), exist_ok=True)
        return "sqlite:///" + db_path.replace("\\", "/")

    # Heroku-style URLs still say postgres://
    if db_url.startswith("postgres://"):
        return db_url.replace("postgres://", "postgresql://", 1)
    return db_url


class Config:
    SECRET_KEY = _env("SECRET_KEY", "dev-please-change-me")

    SQLALCHEMY_DATABASE_URI = _resolve_sqlite_uri(_env("DATABASE_URL"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_AS_ASCII = False
    CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    PUBLIC_BASE_URL = _env("PUBLIC_BASE_URL", "http://localhost:5173")
    COMPANY_NAME = _env("COMPANY_NAME", "Salesdesk")

    # Optional elevated key for admin-only operations (credential reset).
    SERVICE_ROLE_KEY = _env("SERVICE_ROLE_KEY")

    # Card gateway (Toss Payments). The secret never leaves the server.
    TOSS_SECRET_KEY = _env("TOSS_SECRET_KEY")
    TOSS_CLIENT_KEY = _env("TOSS_CLIENT_KEY")
    TOSS_API_BASE = _env("TOSS_API_BASE", "https://api.tosspayments.com")
    GATEWAY_TIMEOUT = float(_env("GATEWAY_TIMEOUT", 30))

    # Checkout rules
    VAT_RATE = float(_env("VAT_RATE", "0.10"))
    BANK_TRANSFER_EXPIRY_HOURS = int(_env("BANK_TRANSFER_EXPIRY_HOURS", 24))
    BANK_ACCOUNT_BANK = _env("BANK_ACCOUNT_BANK")
    BANK_ACCOUNT_NUMBER = _env("BANK_ACCOUNT_NUMBER")
    BANK_ACCOUNT_HOLDER = _env("BANK_ACCOUNT_HOLDER")
    DUPLICATE_CONFIRM_WAIT_SECONDS = float(_env("DUPLICATE_CONFIRM_WAIT_SECONDS", "1.0"))
    DUPLICATE_CONFIRM_HOLD_SECONDS = float(_env("DUPLICATE_CONFIRM_HOLD_SECONDS", "5.0"))

    MAIL_SERVER = _env("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(_env("MAIL_PORT", 465))
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", True)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", _env("MAIL_USERNAME"))
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)
    MAIL_DEBUG = _env_bool("MAIL_DEBUG", False)
    ORDER_NOTIFY_EMAIL = _env("ORDER_NOTIFY_EMAIL")

    TELEGRAM_BOT_TOKEN = _env("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID = _env("TELEGRAM_CHAT_ID")

    PASSWORD_RESET_SALT = _env("PASSWORD_RESET_SALT", "salesdesk-credential-reset")
    PASSWORD_RESET_MAX_AGE = int(_env("PASSWORD_RESET_MAX_AGE", 3600))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    MAIL_SUPPRESS_SEND = True
    MAIL_SERVER = "localhost"
    MAIL_DEFAULT_SENDER = "shop@example.com"
    BCRYPT_LOG_ROUNDS = 4
    TOSS_SECRET_KEY = "test_sk_dummy"
    TOSS_CLIENT_KEY = "test_ck_dummy"
    TELEGRAM_BOT_TOKEN = None
    TELEGRAM_CHAT_ID = None
    SERVICE_ROLE_KEY = None
    DUPLICATE_CONFIRM_WAIT_SECONDS = 0.0
    PUBLIC_BASE_URL = "http://localhost:5173"
