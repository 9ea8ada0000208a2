from sqlalchemy import (
    DECIMAL,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Uuid,
)

from .session import Base


class Customer(Base):
    __tablename__ = "customers"

    customer_id = Column(Uuid, primary_key=True)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=True)
    # Account number given at registration; an Account row may not exist yet.
    account_number = Column(String(10), nullable=True)
    bank_name = Column(String(255), nullable=True)
    pin_hash = Column(String(255), nullable=True)
    # Set only for synthetic identities such as the external sink.
    system_key = Column(String(50), unique=True, nullable=True)
    is_system = Column(Boolean, default=False, nullable=False)
    created_at = Column(TIMESTAMP)
    updated_at = Column(TIMESTAMP)
    deleted_at = Column(TIMESTAMP, nullable=True)


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),)

    account_id = Column(Uuid, primary_key=True)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id"), nullable=False)
    account_number = Column(String(10), unique=True, nullable=False)
    balance = Column(DECIMAL(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="NGN")
    bank_name = Column(String(255), nullable=True)
    created_at = Column(TIMESTAMP)
    updated_at = Column(TIMESTAMP)
    deleted_at = Column(TIMESTAMP, nullable=True)


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    entry_id = Column(Uuid, primary_key=True)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id"), nullable=False)
    account_id = Column(Uuid, ForeignKey("accounts.account_id"), nullable=False)
    counterparty_name = Column(String(255))
    counterparty_bank = Column(String(255), nullable=True)
    counterparty_account = Column(String(20), nullable=True)
    # Signed: debits negative, credits positive.
    amount = Column(DECIMAL(15, 2), nullable=False)
    balance_before = Column(DECIMAL(15, 2), nullable=False)
    balance_after = Column(DECIMAL(15, 2), nullable=False)
    direction = Column(String(10), nullable=False)
    transaction_type = Column(String(30), nullable=False, default="transfer")
    status = Column(String(20), nullable=False)
    reference = Column(String(50), unique=True, nullable=False)
    # Reference of the matching entry on the other side of the transfer.
    correlation_reference = Column(String(50), nullable=True)
    created_at = Column(TIMESTAMP)
    deleted_at = Column(TIMESTAMP, nullable=True)


class Beneficiary(Base):
    __tablename__ = "beneficiaries"

    beneficiary_id = Column(Uuid, primary_key=True)
    customer_id = Column(Uuid, ForeignKey("customers.customer_id"), nullable=False)
    name = Column(String(255), nullable=False)
    nickname = Column(String(100), nullable=True)
    account_number = Column(String(10), nullable=False)
    bank_name = Column(String(255), nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    last_used_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP)
    updated_at = Column(TIMESTAMP)
    deleted_at = Column(TIMESTAMP, nullable=True)
