"""
Pending transaction store.

Holds in-flight transfer intents between conversational turns. Entries are
keyed by an opaque id, owned by one customer and expire after a fixed TTL.
Expiry is enforced lazily on ``get`` and actively by ``sweep``; both use the
same cutoff so an entry is never visible to one and gone for the other.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .exceptions import NotFound
from .locks import KeyedLocks
from .utils import utcnow

logger = logging.getLogger("voxpay.pending")

DEFAULT_TTL = timedelta(minutes=15)


class TransactionType(str, Enum):
    TRANSFER = "transfer"
    INTERNAL_TRANSFER = "internal_transfer"


class TransferStage(str, Enum):
    START = "start"
    AMOUNT_PARSED = "amount_parsed"
    ACCOUNT_SELECTION = "account_selection"
    TARGET_ACCOUNT_SELECTION = "target_account_selection"
    RECIPIENT_RESOLUTION = "recipient_resolution"
    BENEFICIARY_SELECTION = "beneficiary_selection"
    PENDING_PIN = "pending_pin"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


@dataclass
class PendingTransaction:
    id: str
    type: TransactionType
    customer_id: Any
    stage: TransferStage
    created_at: datetime
    expires_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    pin_attempts: int = 0


def generate_pending_id() -> str:
    return f"PTX-{uuid.uuid4().hex}"


class PendingTransactionStore:
    """
    In-process TTL store for pending transactions.

    Safe for many concurrent coroutines: distinct ids never contend, and
    ``locked(id)`` serializes every transition on a single id.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, PendingTransaction] = {}
        self._locks = KeyedLocks()

    def is_expired(self, entry: PendingTransaction, now: Optional[datetime] = None) -> bool:
        return (now or self.clock()) >= entry.expires_at

    def create(
        self,
        type: TransactionType,
        customer_id: Any,
        payload: Dict[str, Any],
        stage: TransferStage = TransferStage.START,
    ) -> PendingTransaction:
        now = self.clock()
        entry = PendingTransaction(
            id=generate_pending_id(),
            type=TransactionType(type),
            customer_id=customer_id,
            stage=stage,
            created_at=now,
            expires_at=now + self.ttl,
            payload=dict(payload),
        )
        self._entries[entry.id] = entry
        logger.info("Pending transaction created id=%s type=%s stage=%s", entry.id, entry.type.value, stage.value)
        return entry

    def get(self, pending_id: str) -> PendingTransaction:
        entry = self._entries.get(pending_id)
        if entry is None:
            raise NotFound("Transaction not found or has expired. Please start a new transaction.")
        if self.is_expired(entry):
            self._entries.pop(pending_id, None)
            logger.info("Pending transaction expired id=%s stage=%s", pending_id, entry.stage.value)
            raise NotFound("Transaction not found or has expired. Please start a new transaction.")
        return entry

    def delete(self, pending_id: str) -> None:
        self._entries.pop(pending_id, None)

    def sweep(self) -> List[str]:
        """
        Drop every expired entry; returns the ids removed.
        """
        now = self.clock()
        expired = [pid for pid, entry in self._entries.items() if self.is_expired(entry, now)]
        for pid in expired:
            self._entries.pop(pid, None)
        if expired:
            logger.info("Swept %d expired pending transactions: %s", len(expired), expired)
        return expired

    @asynccontextmanager
    async def locked(self, pending_id: str) -> AsyncIterator[None]:
        async with self._locks.hold(pending_id):
            yield

    async def run_sweeper(self, interval_seconds: float) -> None:
        """
        Periodically sweep until cancelled.
        """
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("Pending transaction sweep failed")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pending_id: str) -> bool:
        entry = self._entries.get(pending_id)
        return entry is not None and not self.is_expired(entry)
