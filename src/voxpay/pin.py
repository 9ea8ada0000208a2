"""
PIN hashing and verification.

Stored format: ``pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>``.
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
from typing import Any, Optional, Protocol

from sqlalchemy.ext.asyncio import async_sessionmaker

from .db import crud
from .exceptions import ValidationError

logger = logging.getLogger("voxpay.pin")

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 200_000


class PinVerifier(Protocol):
    async def verify(self, customer_id: Any, pin: str) -> bool:
        ...


def _derive(pin: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", pin.encode("utf-8"), salt, iterations)


def hash_pin(pin: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    cleaned = (pin or "").strip()
    if not cleaned.isdigit() or not 4 <= len(cleaned) <= 6:
        raise ValidationError("PIN must be 4 to 6 digits")
    salt = secrets.token_bytes(16)
    digest = _derive(cleaned, salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def check_pin(pin: str, stored_hash: Optional[str]) -> bool:
    if not stored_hash or pin is None:
        return False
    try:
        algorithm, iterations, salt_hex, digest_hex = stored_hash.split("$")
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        logger.warning("Malformed PIN hash encountered")
        return False
    if algorithm != ALGORITHM:
        return False
    candidate = _derive(pin.strip(), salt, rounds)
    return hmac.compare_digest(candidate, expected)


class HashedPinVerifier:
    """
    Checks a submitted PIN against the customer's stored hash.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def verify(self, customer_id: Any, pin: str) -> bool:
        async with self.session_factory() as db:
            customer = await crud.get_customer_by_id(db, customer_id)
        if customer is None or not customer.pin_hash:
            logger.info("No PIN on file for customer=%s", customer_id)
            return False
        # key stretching is CPU bound; keep the event loop free
        return await asyncio.to_thread(check_pin, pin, customer.pin_hash)
