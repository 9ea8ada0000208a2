"""
Double-entry ledger executor.

Each transfer is one database transaction: a conditional debit of the source
account, a credit of the resolved target account, one immutable ledger entry
per side and, when a saved beneficiary was used, its usage bookkeeping.
Anything that fails after the debit rolls the whole unit back.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db import crud
from .db.models import Account, Beneficiary, Customer, LedgerEntry
from .exceptions import (
    ExternalServiceError,
    InsufficientBalance,
    NotFound,
    SameAccount,
    ValidationError,
    VoxPayError,
)
from .locks import KeyedLocks
from .recipients import Recipient
from .utils import as_uuid, generate_reference, last4, require_positive, utcnow

logger = logging.getLogger("voxpay.ledger")

EXTERNAL_SINK_KEY = "SYSTEM_EXTERNAL"
EXTERNAL_SINK_NAME = "External Recipient"
EXTERNAL_SINK_ACCOUNT_NUMBER = "0000000000"

DEBIT = "debit"
CREDIT = "credit"
STATUS_SUCCESS = "success"


class LedgerExecutor:
    """
    Performs atomic balance movements and writes the matching ledger entries.
    """

    def __init__(self, session_factory: async_sessionmaker, default_currency: str = "NGN"):
        self.session_factory = session_factory
        self.default_currency = default_currency
        self._account_locks = KeyedLocks()
        self._sink_lock = asyncio.Lock()
        self._sink_account_id: Optional[Any] = None

    # ------------------------------------------------------------------
    # External sink
    # ------------------------------------------------------------------
    async def ensure_external_sink(self) -> Any:
        """
        Find or create the system-wide account that absorbs credits for
        recipients outside this bank. Returns its account id.
        """
        if self._sink_account_id is not None:
            return self._sink_account_id

        async with self._sink_lock:
            if self._sink_account_id is not None:
                return self._sink_account_id
            try:
                account_id = await self._find_or_create_sink()
            except IntegrityError:
                # Created concurrently by another worker; the unique key wins.
                logger.info("External sink created concurrently; re-reading")
                async with self.session_factory() as db:
                    account_id = await self._find_sink(db)
                if account_id is None:
                    raise ExternalServiceError("External sink account could not be created")
            except SQLAlchemyError as exc:
                logger.exception("Failed to ensure external sink: %s", exc)
                raise ExternalServiceError("External sink account could not be created") from exc
            self._sink_account_id = account_id
        return self._sink_account_id

    async def _find_sink(self, db: AsyncSession) -> Optional[Any]:
        stmt = (
            select(Account.account_id)
            .join(Customer, Customer.customer_id == Account.customer_id)
            .where(Customer.system_key == EXTERNAL_SINK_KEY, Account.deleted_at.is_(None))
            .order_by(Account.created_at.asc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def _find_or_create_sink(self) -> Any:
        async with self.session_factory() as db:
            async with db.begin():
                existing = await self._find_sink(db)
                if existing is not None:
                    return existing

                now = utcnow()
                res = await db.execute(select(Customer).where(Customer.system_key == EXTERNAL_SINK_KEY))
                customer = res.scalars().first()
                if customer is None:
                    customer = Customer(
                        customer_id=uuid4(),
                        full_name=EXTERNAL_SINK_NAME,
                        account_number=EXTERNAL_SINK_ACCOUNT_NUMBER,
                        system_key=EXTERNAL_SINK_KEY,
                        is_system=True,
                        created_at=now,
                        updated_at=now,
                    )
                    db.add(customer)
                    await db.flush()

                account = Account(
                    account_id=uuid4(),
                    customer_id=customer.customer_id,
                    account_number=EXTERNAL_SINK_ACCOUNT_NUMBER,
                    balance=Decimal("0.00"),
                    currency=self.default_currency,
                    created_at=now,
                    updated_at=now,
                )
                db.add(account)
                await db.flush()
                logger.info("External sink created account_id=%s", account.account_id)
                return account.account_id

    # ------------------------------------------------------------------
    # Balance primitives
    # ------------------------------------------------------------------
    async def _debit_balance(self, db: AsyncSession, account_id: Any, amount: Decimal, now) -> Tuple[Decimal, Decimal]:
        # Single conditional update: the balance check and the decrement cannot interleave.
        stmt = (
            update(Account)
            .where(
                Account.account_id == account_id,
                Account.deleted_at.is_(None),
                Account.balance >= amount,
            )
            .values(balance=Account.balance - amount, updated_at=now)
            .returning(Account.balance)
            .execution_options(synchronize_session=False)
        )
        balance_after = (await db.execute(stmt)).scalar_one_or_none()
        if balance_after is None:
            raise InsufficientBalance("Insufficient balance")
        balance_after = Decimal(balance_after)
        return balance_after + amount, balance_after

    async def _credit_balance(self, db: AsyncSession, account_id: Any, amount: Decimal, now) -> Tuple[Decimal, Decimal]:
        stmt = (
            update(Account)
            .where(Account.account_id == account_id, Account.deleted_at.is_(None))
            .values(balance=Account.balance + amount, updated_at=now)
            .returning(Account.balance)
            .execution_options(synchronize_session=False)
        )
        balance_after = (await db.execute(stmt)).scalar_one_or_none()
        if balance_after is None:
            raise NotFound("Credit account not found")
        balance_after = Decimal(balance_after)
        return balance_after - amount, balance_after

    # ------------------------------------------------------------------
    # Credit target resolution
    # ------------------------------------------------------------------
    async def _resolve_credit_target(
        self, db: AsyncSession, recipient: Recipient, sink_account_id: Any, now
    ) -> Account:
        account = await crud.get_account_by_number(db, recipient.account_number)
        if account is not None:
            return account

        customer = None
        if recipient.customer_id is not None:
            customer = await crud.get_customer_by_id(db, recipient.customer_id)
        if customer is None:
            res = await db.execute(
                select(Customer).where(
                    Customer.account_number == recipient.account_number,
                    Customer.deleted_at.is_(None),
                )
            )
            customer = res.scalars().first()

        if customer is not None and not customer.is_system:
            accounts = await crud.get_active_accounts(db, customer.customer_id)
            if accounts:
                return accounts[0]
            account = Account(
                account_id=uuid4(),
                customer_id=customer.customer_id,
                account_number=recipient.account_number,
                balance=Decimal("0.00"),
                currency=self.default_currency,
                bank_name=recipient.bank_name or customer.bank_name,
                created_at=now,
                updated_at=now,
            )
            db.add(account)
            await db.flush()
            logger.info(
                "Opened zero-balance account %s for customer=%s to receive a transfer",
                account.account_number,
                customer.customer_id,
            )
            return account

        sink = await crud.get_account(db, sink_account_id)
        if sink is None:
            raise ExternalServiceError("External sink account is missing")
        return sink

    async def _touch_beneficiary(self, db: AsyncSession, beneficiary_id: Any, customer_id: Any, now) -> None:
        await db.execute(
            update(Beneficiary)
            .where(
                Beneficiary.beneficiary_id == beneficiary_id,
                Beneficiary.customer_id == customer_id,
                Beneficiary.deleted_at.is_(None),
            )
            .values(
                usage_count=Beneficiary.usage_count + 1,
                last_used_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    async def transfer(self, source_account_id: Any, recipient: Recipient, amount: Any) -> LedgerEntry:
        """
        Move ``amount`` from a customer account to ``recipient``.

        Returns the debit entry, which serves as the transfer receipt.
        """
        amount = require_positive(amount)
        source_account_id = as_uuid(source_account_id)
        if not recipient.account_number:
            raise ValidationError("Recipient account number is required")

        sink_account_id = await self.ensure_external_sink()

        async with self._account_locks.hold(source_account_id):
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        source = await crud.get_account(db, source_account_id)
                        if source is None:
                            raise NotFound("Source account not found")
                        if source.account_number == recipient.account_number:
                            raise SameAccount("You cannot transfer to the same account")
                        sender = await crud.get_customer_by_id(db, source.customer_id)
                        if sender is None:
                            raise NotFound("Customer not found")

                        now = utcnow()
                        debit_ref = generate_reference()
                        credit_ref = generate_reference()

                        debit_before, debit_after = await self._debit_balance(db, source.account_id, amount, now)
                        debit = LedgerEntry(
                            entry_id=uuid4(),
                            customer_id=source.customer_id,
                            account_id=source.account_id,
                            counterparty_name=recipient.name,
                            counterparty_bank=recipient.bank_name,
                            counterparty_account=recipient.account_number,
                            amount=-amount,
                            balance_before=debit_before,
                            balance_after=debit_after,
                            direction=DEBIT,
                            transaction_type="transfer",
                            status=STATUS_SUCCESS,
                            reference=debit_ref,
                            correlation_reference=credit_ref,
                            created_at=now,
                        )
                        db.add(debit)

                        target = await self._resolve_credit_target(db, recipient, sink_account_id, now)
                        credit_before, credit_after = await self._credit_balance(db, target.account_id, amount, now)
                        credit = LedgerEntry(
                            entry_id=uuid4(),
                            customer_id=target.customer_id,
                            account_id=target.account_id,
                            counterparty_name=sender.full_name,
                            counterparty_bank=source.bank_name,
                            counterparty_account=source.account_number,
                            amount=amount,
                            balance_before=credit_before,
                            balance_after=credit_after,
                            direction=CREDIT,
                            transaction_type="transfer",
                            status=STATUS_SUCCESS,
                            reference=credit_ref,
                            correlation_reference=debit_ref,
                            created_at=now,
                        )
                        db.add(credit)

                        if recipient.beneficiary_id is not None:
                            await self._touch_beneficiary(db, as_uuid(recipient.beneficiary_id), source.customer_id, now)
            except VoxPayError as exc:
                logger.warning(
                    "Transfer rejected source=%s to=%s amount=%s: %s",
                    source_account_id,
                    recipient.account_number,
                    amount,
                    exc,
                )
                raise
            except SQLAlchemyError as exc:
                logger.exception("Transfer failed (DB error) source=%s: %s", source_account_id, exc)
                raise ExternalServiceError("Database error during transfer") from exc

        logger.info(
            "Transfer success ref=%s from=%s to=%s (%s) amount=%s",
            debit.reference,
            source.account_number,
            recipient.account_number,
            recipient.origin.value,
            amount,
        )
        return debit

    async def internal_transfer(
        self, customer_id: Any, source_account_id: Any, target_account_id: Any, amount: Any
    ) -> LedgerEntry:
        """
        Move ``amount`` between two accounts owned by ``customer_id``.
        """
        amount = require_positive(amount)
        customer_id = as_uuid(customer_id)
        source_account_id = as_uuid(source_account_id)
        target_account_id = as_uuid(target_account_id)
        if source_account_id == target_account_id:
            raise SameAccount("You cannot transfer to the same account")

        async with self._account_locks.hold(source_account_id, target_account_id):
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        source = await crud.get_account(db, source_account_id)
                        target = await crud.get_account(db, target_account_id)
                        if source is None or str(source.customer_id) != str(customer_id):
                            raise NotFound("Source account not found")
                        if target is None or str(target.customer_id) != str(customer_id):
                            raise NotFound("Target account not found")
                        owner = await crud.get_customer_by_id(db, customer_id)
                        owner_name = owner.full_name if owner else ""

                        now = utcnow()
                        debit_ref = generate_reference()
                        credit_ref = generate_reference()

                        debit_before, debit_after = await self._debit_balance(db, source.account_id, amount, now)
                        credit_before, credit_after = await self._credit_balance(db, target.account_id, amount, now)

                        debit = LedgerEntry(
                            entry_id=uuid4(),
                            customer_id=customer_id,
                            account_id=source.account_id,
                            counterparty_name=owner_name,
                            counterparty_bank=target.bank_name,
                            counterparty_account=target.account_number,
                            amount=-amount,
                            balance_before=debit_before,
                            balance_after=debit_after,
                            direction=DEBIT,
                            transaction_type="internal_transfer",
                            status=STATUS_SUCCESS,
                            reference=debit_ref,
                            correlation_reference=credit_ref,
                            created_at=now,
                        )
                        credit = LedgerEntry(
                            entry_id=uuid4(),
                            customer_id=customer_id,
                            account_id=target.account_id,
                            counterparty_name=owner_name,
                            counterparty_bank=source.bank_name,
                            counterparty_account=source.account_number,
                            amount=amount,
                            balance_before=credit_before,
                            balance_after=credit_after,
                            direction=CREDIT,
                            transaction_type="internal_transfer",
                            status=STATUS_SUCCESS,
                            reference=credit_ref,
                            correlation_reference=debit_ref,
                            created_at=now,
                        )
                        db.add_all([debit, credit])
            except VoxPayError as exc:
                logger.warning(
                    "Internal transfer rejected customer=%s source=%s target=%s: %s",
                    customer_id,
                    source_account_id,
                    target_account_id,
                    exc,
                )
                raise
            except SQLAlchemyError as exc:
                logger.exception("Internal transfer failed (DB error) customer=%s: %s", customer_id, exc)
                raise ExternalServiceError("Database error during transfer") from exc

        logger.info(
            "Internal transfer success ref=%s %s -> %s amount=%s",
            debit.reference,
            last4(source.account_number),
            last4(target.account_number),
            amount,
        )
        return debit
