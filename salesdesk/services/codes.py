# salesdesk/services/codes.py
import logging
import secrets
import string

from salesdesk.extensions import db

log = logging.getLogger(__name__)

ALPHABET = string.ascii_letters + string.digits


def random_string(length: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_product_slug() -> str:
    return "p_" + random_string(12)


def generate_referral_code() -> str:
    return "REF_" + random_string(10)


def unique_code(column, generator, max_attempts: int = 10) -> str:
    """Draw codes until one is unused in ``column`` (a mapped attribute)."""
    for attempt in range(max_attempts):
        code = generator()
        taken = db.session.scalar(db.select(column).where(column == code).limit(1))
        if taken is None:
            return code
        log.warning("%s collision (%s), retrying %d/%d", column.key, code, attempt + 1, max_attempts)
    raise RuntimeError(f"Could not generate a unique {column.key} after {max_attempts} attempts")
