"""
Utility functions for the application.
"""
from datetime import datetime, timezone, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def expiry_from_seconds(expires_in: Optional[int], now: Optional[datetime] = None) -> Optional[datetime]:
    """Convert an OAuth ``expires_in`` value into an absolute naive UTC expiry."""
    if expires_in is None:
        return None
    return (now or utc_now()) + timedelta(seconds=int(expires_in))


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce platform money values ("285.00", 285, {"amount": 28500, "divisor": 100})
    into a Decimal. Returns None for anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        amount = value.get("amount", value.get("value"))
        divisor = value.get("divisor", 1) or 1
        parsed = to_decimal(amount)
        return parsed / Decimal(divisor) if parsed is not None else None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
