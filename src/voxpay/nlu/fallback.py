"""
Residual raw-text parsing for transfer requests.

Used only when a caller sends free text instead of the intent extractor's
structured output. Patterns are deliberately narrow.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from .request import ParsedRequest

ACCOUNT_NUMBER_RE = re.compile(r"\b(\d{10})\b")
AMOUNT_RE = re.compile(r"(?:₦|NGN|N)?\s*(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)\s*(k|K)?\b")
ENDING_RE = re.compile(r"(?:ending(?:\s+(?:with|in))?|ends\s+with)\s+(\d{4})\b", re.IGNORECASE)
FROM_ENDING_RE = re.compile(r"from\s+(?:my\s+)?(?:account\s+)?(?:ending(?:\s+(?:with|in))?\s+)?(\d{4})\b", re.IGNORECASE)
NAME_PATTERNS = (
    re.compile(r"\bto\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)"),
    re.compile(r"\bto\s+([A-Za-z][a-z]+(?:\s+[A-Za-z][a-z]+)*)\s*$", re.IGNORECASE),
)


def _extract_amount(text: str) -> Optional[Decimal]:
    # A 10-digit run is an account number, never an amount.
    stripped = ACCOUNT_NUMBER_RE.sub(" ", text)
    stripped = ENDING_RE.sub(" ", stripped)
    stripped = FROM_ENDING_RE.sub(" ", stripped)
    match = AMOUNT_RE.search(stripped)
    if not match:
        return None
    try:
        amount = Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None
    if match.group(2):
        amount *= 1000
    return amount


def _extract_name(text: str) -> Optional[str]:
    for pattern in NAME_PATTERNS:
        match = pattern.search(text)
        if match:
            name = match.group(1).strip()
            if name.lower().startswith("my "):
                continue
            return name
    return None


def parse_transfer_message(text: str) -> ParsedRequest:
    """
    Best-effort extraction of amount and recipient from a raw message, e.g.
    "Send 10,000 to Sarah Mohammed" or "Send 5k to 0123456789".
    """
    text = (text or "").strip()
    account_match = ACCOUNT_NUMBER_RE.search(text)
    account_number = account_match.group(1) if account_match else None
    source_ending = FROM_ENDING_RE.search(text)
    # "from ... ending 1111 to ... ending 2222": the first ending is the source
    target_ending = ENDING_RE.search(FROM_ENDING_RE.sub(" ", text))

    return ParsedRequest(
        amount=_extract_amount(text),
        account_number=account_number,
        recipient_name=None if account_number else _extract_name(text),
        target_account_ending=target_ending.group(1) if target_ending else None,
        source_account_ending=source_ending.group(1) if source_ending else None,
        confidence=0.5,
    )
