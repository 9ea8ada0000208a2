from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..banks.resolver import AccountResolver
from ..ledger import LedgerExecutor
from ..orchestrator import TransferOrchestrator
from ..pending import PendingTransactionStore
from ..recipients import RecipientMatcher


@dataclass
class Services:
    session_factory: async_sessionmaker
    store: PendingTransactionStore
    resolver: AccountResolver
    matcher: RecipientMatcher
    ledger: LedgerExecutor
    orchestrator: TransferOrchestrator


def get_services(request: Request) -> Services:
    return request.app.state.services

