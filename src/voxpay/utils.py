"""
Common helpers shared by the ledger and the orchestrator.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

from .exceptions import ValidationError

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP (without time zone) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_money(value: Any) -> Decimal:
    """
    Coerce an amount to a two-decimal Decimal, rejecting anything non-numeric
    or finer than a cent.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        else:
            amount = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"Invalid amount: {value!r} has more than two decimal places")
    return amount.quantize(CENT)


def require_positive(value: Any) -> Decimal:
    amount = to_money(value)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


def format_currency(amount: Decimal, currency: str = "NGN") -> str:
    """
    Format amount as currency string
    """
    if currency == "NGN":
        return f"₦{amount:,.2f}"
    return f"{currency} {amount:,.2f}"


def last4(account_number: Optional[str]) -> str:
    return (account_number or "")[-4:]


def generate_reference(prefix: str = "TXN") -> str:
    """
    Generate a unique ledger reference, e.g. TXN20261019124501A1B2C3D4E5F6.
    """
    stamp = utcnow().strftime("%Y%m%d%H%M%S")
    return f"{prefix}{stamp}{uuid4().hex[:12].upper()}"


def as_uuid(value: Any) -> UUID:
    """
    Normalize an identifier received as text (HTTP, pending payloads) to a UUID.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid identifier: {value!r}") from exc
