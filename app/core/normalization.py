import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation


def _strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "")
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_customer_name(value: str) -> str:
    """Collapse repeated spaces and trim. Keeps accents and casing."""
    return re.sub(r"\s+", " ", (value or "").strip())


def customer_key(value: str) -> str:
    """
    Comparison key for final-customer names.
    Case and repeated spaces do not matter.
    """
    return normalize_customer_name(value).casefold()


def normalize_choice(value) -> str:
    """Lowercase ASCII form of a choice label ("Personnalisé" -> "personnalise")."""
    return _strip_accents(str(value or "").strip()).lower()


def to_decimal(value, default=None):
    """Decimal from int/float/str. Floats go through str() to keep their short repr."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def to_date(value, default=None):
    """date from a date or an ISO string (a time part is ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        return default
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return default
