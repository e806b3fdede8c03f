"""Model-level validation utilities.

Enforced at the ORM level so invalid amounts or settings never reach the
database, whichever service writes them.
"""

from decimal import Decimal

PAYMENT_MODE_KEYS = ("upi", "cash", "card")


def non_negative(key: str, value):
    """Validate that a numeric value is >= 0."""
    if value is not None:
        v = Decimal(str(value)) if not isinstance(value, Decimal) else value
        if v < 0:
            raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    """Validate that a numeric value is > 0."""
    if value is not None:
        v = Decimal(str(value)) if not isinstance(value, Decimal) else value
        if v <= 0:
            raise ValueError(f"{key} must be positive, got {value}")
    return value


def percentage(key: str, value):
    """Validate that a value is between 0 and 100 inclusive."""
    if value is not None:
        v = Decimal(str(value))
        if v < 0 or v > 100:
            raise ValueError(f"{key} must be between 0 and 100, got {value}")
    return value


def valid_payment_modes(key: str, value):
    """Validate a ``{"upi": bool, "cash": bool, "card": bool}`` map with at least one mode on."""
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be a dict, got {type(value).__name__}")
    unknown = set(value) - set(PAYMENT_MODE_KEYS)
    if unknown:
        raise ValueError(f"{key} has unknown payment modes: {sorted(unknown)}")
    if not any(value.get(mode) for mode in PAYMENT_MODE_KEYS):
        raise ValueError(f"{key} must enable at least one payment mode")
    return value


def validate_list_of_dicts(key: str, value):
    """Validate that a JSON column value is a list of dicts (or None)."""
    if value is not None:
        if not isinstance(value, list):
            raise ValueError(f"{key} must be a list, got {type(value).__name__}")
        for i, item in enumerate(value):
            if not isinstance(item, dict):
                raise ValueError(f"{key}[{i}] must be a dict, got {type(item).__name__}")
    return value
