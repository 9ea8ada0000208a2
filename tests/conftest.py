"""
Pytest configuration and fixtures.

Every test gets its own SQLite database file (through aiosqlite) with the
schema created, plus helpers to seed customers, accounts and beneficiaries.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from voxpay.banks.catalog import BANK_CATALOG
from voxpay.banks.resolver import AccountResolver
from voxpay.clients.bank_verification import VerifiedAccount
from voxpay.config import Settings
from voxpay.db.models import Account, Beneficiary, Customer, LedgerEntry
from voxpay.db.session import build_session_factory, create_schema
from voxpay.exceptions import BankVerificationError
from voxpay.ledger import LedgerExecutor
from voxpay.orchestrator import TransferOrchestrator
from voxpay.pending import PendingTransactionStore
from voxpay.pin import HashedPinVerifier, hash_pin
from voxpay.recipients import RecipientMatcher
from voxpay.utils import generate_reference, utcnow

TEST_PIN = "1234"
# Low iteration count keeps the suite fast; the stored format is unchanged.
TEST_PIN_ITERATIONS = 1_000


class FakeClock:
    """Controllable clock for the pending transaction store."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeVerifier:
    """
    In-memory stand-in for the bank verification service.

    Accounts registered with ``add`` verify; everything else fails the way
    the real client does.
    """

    def __init__(self):
        self.accounts: Dict[Tuple[str, str], str] = {}
        self.calls: List[Tuple[str, str]] = []

    def add(self, account_number: str, bank_code: str, account_name: str) -> None:
        self.accounts[(account_number, bank_code)] = account_name

    async def verify(self, account_number: str, bank_code: str) -> VerifiedAccount:
        self.calls.append((account_number, bank_code))
        name = self.accounts.get((account_number, bank_code))
        if name is None:
            raise BankVerificationError(f"Could not resolve account name for {account_number}/{bank_code}")
        return VerifiedAccount(
            account_name=name,
            account_number=account_number,
            bank_name=BANK_CATALOG.name_for(bank_code),
            bank_code=bank_code,
        )


class Seeder:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def customer(
        self,
        full_name: str,
        pin: Optional[str] = TEST_PIN,
        account_number: Optional[str] = None,
        bank_name: str = "VoxBank",
    ) -> Customer:
        now = utcnow()
        customer = Customer(
            customer_id=uuid4(),
            full_name=full_name,
            account_number=account_number,
            bank_name=bank_name,
            pin_hash=hash_pin(pin, iterations=TEST_PIN_ITERATIONS) if pin else None,
            is_system=False,
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as db:
            db.add(customer)
            await db.commit()
        return customer

    async def account(
        self,
        customer: Customer,
        account_number: str,
        balance: str = "0.00",
        bank_name: str = "VoxBank",
        created_at: Optional[datetime] = None,
    ) -> Account:
        now = created_at or utcnow()
        account = Account(
            account_id=uuid4(),
            customer_id=customer.customer_id,
            account_number=account_number,
            balance=Decimal(balance),
            currency="NGN",
            bank_name=bank_name,
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as db:
            db.add(account)
            await db.commit()
        return account

    async def beneficiary(
        self,
        customer: Customer,
        name: str,
        account_number: str,
        bank_name: str = "Guaranty Trust Bank",
        usage_count: int = 0,
    ) -> Beneficiary:
        now = utcnow()
        beneficiary = Beneficiary(
            beneficiary_id=uuid4(),
            customer_id=customer.customer_id,
            name=name,
            account_number=account_number,
            bank_name=bank_name,
            usage_count=usage_count,
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as db:
            db.add(beneficiary)
            await db.commit()
        return beneficiary

    async def past_transfer(
        self,
        account: Account,
        counterparty_name: str,
        counterparty_account: str,
        counterparty_bank: str = "Zenith Bank",
        amount: str = "1000.00",
    ) -> LedgerEntry:
        entry = LedgerEntry(
            entry_id=uuid4(),
            customer_id=account.customer_id,
            account_id=account.account_id,
            counterparty_name=counterparty_name,
            counterparty_bank=counterparty_bank,
            counterparty_account=counterparty_account,
            amount=-Decimal(amount),
            balance_before=Decimal(account.balance),
            balance_after=Decimal(account.balance),
            direction="debit",
            transaction_type="transfer",
            status="success",
            reference=generate_reference(),
            created_at=utcnow(),
        )
        async with self.session_factory() as db:
            db.add(entry)
            await db.commit()
        return entry


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'voxpay.db'}",
        log_dir=tmp_path / "logs",
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_async_engine(settings.database_url)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def seeder(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> PendingTransactionStore:
    return PendingTransactionStore(ttl=timedelta(minutes=15), clock=clock)


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def resolver(verifier) -> AccountResolver:
    return AccountResolver(verifier)


@pytest.fixture
def ledger(session_factory) -> LedgerExecutor:
    return LedgerExecutor(session_factory)


@pytest.fixture
def matcher(session_factory) -> RecipientMatcher:
    return RecipientMatcher(session_factory)


@pytest.fixture
def orchestrator(session_factory, store, resolver, matcher, ledger) -> TransferOrchestrator:
    return TransferOrchestrator(
        session_factory=session_factory,
        store=store,
        resolver=resolver,
        matcher=matcher,
        executor=ledger,
        pin_verifier=HashedPinVerifier(session_factory),
        pin_max_attempts=3,
    )
