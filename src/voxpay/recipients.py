"""
Recipient model and name-based recipient search.

Every recipient the orchestrator can pay, whatever its source, is carried as
one ``Recipient`` with an ``origin`` tag.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from .db.models import Account, Beneficiary, Customer, LedgerEntry
from .utils import last4

logger = logging.getLogger("voxpay.recipients")

DEFAULT_SEARCH_LIMIT = 50


class RecipientOrigin(str, Enum):
    BENEFICIARY = "beneficiary"
    CUSTOMER = "customer"
    HISTORY = "history"
    VERIFIED = "verified"
    OWN_ACCOUNT = "own_account"


@dataclass(frozen=True)
class Recipient:
    name: str
    account_number: str
    bank_name: Optional[str]
    origin: RecipientOrigin
    beneficiary_id: Optional[Any] = None
    customer_id: Optional[Any] = None
    account_id: Optional[Any] = None

    @property
    def last4(self) -> str:
        return last4(self.account_number)

    @property
    def dedup_key(self) -> Tuple[str, str]:
        return (self.account_number, self.bank_name or "")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["origin"] = self.origin.value
        data["last4"] = self.last4
        for key in ("beneficiary_id", "customer_id", "account_id"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


def _name_matches(column, pattern: str):
    return func.lower(column).contains(pattern.lower(), autoescape=True)


class RecipientMatcher:
    """
    Merges saved beneficiaries, other customers and past counterparties.
    """

    def __init__(self, session_factory: async_sessionmaker, limit: int = DEFAULT_SEARCH_LIMIT):
        self.session_factory = session_factory
        self.limit = limit

    async def search(self, customer_id: Any, name_pattern: str) -> List[Recipient]:
        pattern = (name_pattern or "").strip()
        if not pattern:
            return []

        results: List[Recipient] = []
        seen: Set[Tuple[str, str]] = set()

        def add(candidates: List[Recipient]) -> None:
            for candidate in candidates:
                if len(results) >= self.limit:
                    return
                if candidate.dedup_key in seen:
                    continue
                seen.add(candidate.dedup_key)
                results.append(candidate)

        async with self.session_factory() as db:
            add(await self._saved_beneficiaries(db, customer_id, pattern))
            if len(results) < self.limit:
                add(await self._other_customers(db, customer_id, pattern))
            if len(results) < self.limit:
                add(await self._history(db, customer_id, pattern))

        logger.info(
            "Recipient search customer=%s pattern=%r -> %d candidates",
            customer_id,
            pattern,
            len(results),
        )
        return results

    async def _saved_beneficiaries(self, db, customer_id, pattern: str) -> List[Recipient]:
        stmt = (
            select(Beneficiary)
            .where(
                Beneficiary.customer_id == customer_id,
                Beneficiary.deleted_at.is_(None),
                _name_matches(Beneficiary.name, pattern),
            )
            .order_by(Beneficiary.usage_count.desc(), Beneficiary.created_at.asc())
            .limit(self.limit)
        )
        rows = (await db.execute(stmt)).scalars().all()
        return [
            Recipient(
                name=b.name,
                account_number=b.account_number,
                bank_name=b.bank_name,
                origin=RecipientOrigin.BENEFICIARY,
                beneficiary_id=b.beneficiary_id,
            )
            for b in rows
        ]

    async def _other_customers(self, db, customer_id, pattern: str) -> List[Recipient]:
        stmt = (
            select(Customer)
            .where(
                Customer.customer_id != customer_id,
                Customer.deleted_at.is_(None),
                Customer.is_system.is_(False),
                _name_matches(Customer.full_name, pattern),
                select(Account.account_id)
                .where(Account.customer_id == Customer.customer_id, Account.deleted_at.is_(None))
                .exists(),
            )
            .order_by(Customer.created_at.asc())
            .limit(self.limit)
        )
        customers = (await db.execute(stmt)).scalars().all()
        if not customers:
            return []

        acct_stmt = (
            select(Account)
            .where(
                Account.customer_id.in_([c.customer_id for c in customers]),
                Account.deleted_at.is_(None),
            )
            .order_by(Account.created_at.asc(), Account.account_number.asc())
        )
        first_account: Dict[Any, Account] = {}
        for account in (await db.execute(acct_stmt)).scalars().all():
            first_account.setdefault(account.customer_id, account)

        found = []
        for c in customers:
            account = first_account.get(c.customer_id)
            if account is None:
                continue
            found.append(
                Recipient(
                    name=c.full_name,
                    account_number=account.account_number,
                    bank_name=account.bank_name or c.bank_name,
                    origin=RecipientOrigin.CUSTOMER,
                    customer_id=c.customer_id,
                    account_id=account.account_id,
                )
            )
        return found

    async def _history(self, db, customer_id, pattern: str) -> List[Recipient]:
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.customer_id == customer_id,
                LedgerEntry.deleted_at.is_(None),
                LedgerEntry.direction == "debit",
                LedgerEntry.transaction_type == "transfer",
                LedgerEntry.counterparty_account.is_not(None),
                _name_matches(LedgerEntry.counterparty_name, pattern),
            )
            .order_by(LedgerEntry.created_at.desc())
            .limit(self.limit)
        )
        rows = (await db.execute(stmt)).scalars().all()
        return [
            Recipient(
                name=t.counterparty_name,
                account_number=t.counterparty_account,
                bank_name=t.counterparty_bank,
                origin=RecipientOrigin.HISTORY,
            )
            for t in rows
        ]
