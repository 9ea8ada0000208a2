from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..utils import as_uuid
from .models import Account, Beneficiary, Customer, LedgerEntry


async def get_customer_by_id(db: AsyncSession, customer_id) -> Optional[Customer]:
    q = select(Customer).where(Customer.customer_id == as_uuid(customer_id), Customer.deleted_at.is_(None))
    res = await db.execute(q)
    return res.scalars().first()


async def get_active_accounts(db: AsyncSession, customer_id) -> List[Account]:
    q = (
        select(Account)
        .where(Account.customer_id == as_uuid(customer_id), Account.deleted_at.is_(None))
        .order_by(Account.created_at.asc(), Account.account_number.asc())
    )
    res = await db.execute(q)
    return list(res.scalars().all())


async def get_account(db: AsyncSession, account_id) -> Optional[Account]:
    q = select(Account).where(Account.account_id == as_uuid(account_id), Account.deleted_at.is_(None))
    res = await db.execute(q)
    return res.scalars().first()


async def get_account_by_number(db: AsyncSession, account_number: str) -> Optional[Account]:
    q = select(Account).where(Account.account_number == account_number, Account.deleted_at.is_(None))
    res = await db.execute(q)
    return res.scalars().first()


async def get_beneficiary(db: AsyncSession, beneficiary_id) -> Optional[Beneficiary]:
    q = select(Beneficiary).where(
        Beneficiary.beneficiary_id == as_uuid(beneficiary_id), Beneficiary.deleted_at.is_(None)
    )
    res = await db.execute(q)
    return res.scalars().first()
