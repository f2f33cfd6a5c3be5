# ============================================================
# validators.py — Shared form checks
# ============================================================
# Each check returns an error message or None so forms can build
# a {field: message} dict and raise ValidationError once.
# ============================================================

import math
import re
from typing import Any, Optional

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PASSWORD_MIN_LENGTH = 6


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def required(value: Any, label: str) -> Optional[str]:
    return f"{label} is required" if is_blank(value) else None


def email_error(email: Optional[str]) -> Optional[str]:
    if is_blank(email):
        return "Email is required"
    if not EMAIL_RE.match(email.strip()):
        return "Please enter a valid email address"
    return None


def password_error(password: Optional[str], min_length: int = PASSWORD_MIN_LENGTH) -> Optional[str]:
    if is_blank(password):
        return "Password is required"
    if len(password) < min_length:
        return f"Password must be at least {min_length} characters long"
    return None


def to_number(value: Any) -> Optional[float]:
    """Parse a form value; blank → None, garbage, nan or inf → ValueError."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{value!r} is not a finite number")
    return number


def to_int(value: Any) -> Optional[int]:
    number = to_number(value)
    if number is None:
        return None
    if number != int(number):
        raise ValueError(f"{value!r} is not a whole number")
    return int(number)
