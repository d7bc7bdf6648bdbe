from datetime import date, datetime


def parse_date(s) -> date | None:
    """YYYY-MM-DD -> date, or None when empty or malformed."""
    if not s:
        return None
    try:
        return datetime.strptime(str(s), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_int(s, default=None):
    try:
        return int(s)
    except (TypeError, ValueError):
        return default
