"""
Transfer orchestration.

Drives a money transfer across several conversational turns:

    start -> amount_parsed -> [account_selection] -> recipient_resolution
          -> [beneficiary_selection] -> pending_pin -> executed

Bracketed stages only occur when there is something to disambiguate. State
between turns lives in the PendingTransactionStore; every transition on a
pending id runs under that id's lock, and a pending transaction can only be
touched by the customer who created it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .banks.resolver import ACCOUNT_NUMBER_LENGTH, AccountResolver
from .db import crud
from .db.models import LedgerEntry
from .exceptions import (
    AccountNotResolvable,
    ExternalServiceError,
    InsufficientBalance,
    NotFound,
    Unauthorized,
    ValidationError,
    VoxPayError,
)
from .ledger import LedgerExecutor
from .nlu.request import ParsedRequest
from .nlu.selection import match_selection
from .pending import PendingTransaction, PendingTransactionStore, TransactionType, TransferStage
from .pin import PinVerifier
from .recipients import Recipient, RecipientMatcher, RecipientOrigin
from .schemas import PinConfirmation, TransferReply
from .utils import as_uuid, format_currency, last4, require_positive

logger = logging.getLogger("voxpay.orchestrator")

AMOUNT_PROMPT = (
    "I need the amount to transfer. For example: 'Send 10000 to Sarah Mohammed' "
    "or 'Send 10000 to 0123456789'"
)
RECIPIENT_PROMPT = (
    "I need either a recipient name or account number. For example: "
    "'Send 10000 to Sarah Mohammed' or 'Send 10000 to 0123456789'"
)
TOP_UP_MESSAGE = "You do not have sufficient balance to make this transfer. Please top up."


class RequiredAction(str, Enum):
    SELECT_ACCOUNT = "select_account"
    SELECT_TARGET_ACCOUNT = "select_target_account"
    SELECT_BENEFICIARY = "select_beneficiary"
    VERIFY_PIN = "verify_pin"


def _account_snapshot(account) -> Dict[str, Any]:
    return {
        "account_id": account.account_id,
        "account_number": account.account_number,
        "balance": Decimal(account.balance),
        "currency": account.currency,
    }


def _endings(accounts: List[Dict[str, Any]]) -> List[str]:
    return [last4(a["account_number"]) for a in accounts]


class TransferOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        store: PendingTransactionStore,
        resolver: AccountResolver,
        matcher: RecipientMatcher,
        executor: LedgerExecutor,
        pin_verifier: PinVerifier,
        pin_max_attempts: int = 3,
    ) -> None:
        self.session_factory = session_factory
        self.store = store
        self.resolver = resolver
        self.matcher = matcher
        self.executor = executor
        self.pin_verifier = pin_verifier
        self.pin_max_attempts = pin_max_attempts

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    async def _load_accounts(self, customer_id):
        async with self.session_factory() as db:
            customer = await crud.get_customer_by_id(db, customer_id)
            if customer is None:
                raise NotFound("Customer not found")
            return await crud.get_active_accounts(db, customer_id)

    def _load_owned(self, pending_id: str, customer_id: Any) -> PendingTransaction:
        entry = self.store.get(pending_id)
        if entry.customer_id != as_uuid(customer_id):
            logger.warning(
                "Customer %s attempted to act on pending transaction %s owned by %s",
                customer_id,
                pending_id,
                entry.customer_id,
            )
            raise Unauthorized("This transaction does not belong to you.")
        return entry

    def _advance(
        self,
        entry: Optional[PendingTransaction],
        customer_id: Any,
        payload: Dict[str, Any],
        stage: TransferStage,
        type: TransactionType = TransactionType.TRANSFER,
    ) -> PendingTransaction:
        if entry is None:
            return self.store.create(type, customer_id, payload, stage=stage)
        entry.payload = payload
        entry.stage = stage
        logger.info("Pending transaction %s -> %s", entry.id, stage.value)
        return entry

    def _discard(self, entry: Optional[PendingTransaction], reason: str) -> None:
        if entry is None:
            return
        self.store.delete(entry.id)
        logger.warning(
            "Discarded pending transaction id=%s customer=%s stage=%s: %s",
            entry.id,
            entry.customer_id,
            entry.stage.value,
            reason,
        )

    def _pin_reply(self, entry: PendingTransaction, message: str) -> TransferReply:
        return TransferReply(
            message=message,
            pending_transaction_id=entry.id,
            required_action=RequiredAction.VERIFY_PIN.value,
            stage=TransferStage.PENDING_PIN.value,
        )

    # ------------------------------------------------------------------
    # Transfer to a recipient
    # ------------------------------------------------------------------
    async def initiate_transfer(self, customer_id: Any, parsed: ParsedRequest) -> TransferReply:
        customer_id = as_uuid(customer_id)
        if parsed.amount is None:
            return TransferReply(message=AMOUNT_PROMPT, stage=TransferStage.START.value)
        amount = require_positive(parsed.amount)

        account_number = parsed.account_number
        if account_number is not None and (
            len(account_number) != ACCOUNT_NUMBER_LENGTH or not account_number.isdigit()
        ):
            raise ValidationError("Account number must be exactly 10 digits")
        if not account_number and not parsed.recipient_name:
            return TransferReply(message=RECIPIENT_PROMPT, stage=TransferStage.AMOUNT_PARSED.value)

        accounts = await self._load_accounts(customer_id)
        if not accounts:
            return TransferReply(message="You don't have an active account. Please contact support.")

        payload: Dict[str, Any] = {
            "amount": amount,
            "recipient_name": parsed.recipient_name,
            "account_number": account_number,
            "institution_code": parsed.institution_code,
        }

        if len(accounts) > 1:
            if not any(Decimal(a.balance) >= amount for a in accounts):
                return TransferReply(
                    message="You do not have sufficient balance in any account to make this transfer. Please top up."
                )
            payload["accounts"] = [_account_snapshot(a) for a in accounts]
            entry = self._advance(None, customer_id, payload, TransferStage.ACCOUNT_SELECTION)
            endings = _endings(payload["accounts"])
            return TransferReply(
                message=(
                    f"You have {len(accounts)} accounts. Which account should I deduct from? "
                    f"Accounts ending: {', '.join(endings)}?"
                ),
                pending_transaction_id=entry.id,
                required_action=RequiredAction.SELECT_ACCOUNT.value,
                stage=entry.stage.value,
                candidates=endings,
            )

        account = accounts[0]
        if Decimal(account.balance) < amount:
            return TransferReply(message=TOP_UP_MESSAGE)
        payload["source_account_id"] = account.account_id
        payload["currency"] = account.currency
        return await self._resolve_recipient(customer_id, payload, None)

    async def _recipient_for_account_number(self, account_number: str, institution_code: Optional[str]) -> Recipient:
        async with self.session_factory() as db:
            account = await crud.get_account_by_number(db, account_number)
            owner = await crud.get_customer_by_id(db, account.customer_id) if account else None
        if account is not None and owner is not None and not owner.is_system:
            return Recipient(
                name=owner.full_name,
                account_number=account.account_number,
                bank_name=account.bank_name or owner.bank_name,
                origin=RecipientOrigin.CUSTOMER,
                customer_id=owner.customer_id,
                account_id=account.account_id,
            )

        verified = await self.resolver.resolve(account_number, institution_code)
        return Recipient(
            name=verified.account_name,
            account_number=verified.account_number,
            bank_name=verified.bank_name,
            origin=RecipientOrigin.VERIFIED,
        )

    async def _resolve_recipient(
        self,
        customer_id: Any,
        payload: Dict[str, Any],
        entry: Optional[PendingTransaction],
    ) -> TransferReply:
        amount_text = format_currency(payload["amount"], payload.get("currency", "NGN"))
        account_number = payload.get("account_number")

        if account_number:
            try:
                recipient = await self._recipient_for_account_number(
                    account_number, payload.get("institution_code")
                )
            except AccountNotResolvable as exc:
                self._discard(entry, f"account {account_number} not resolvable: {exc.last_error}")
                return TransferReply(
                    message=(
                        f"I couldn't verify account number {account_number}. "
                        "Please check the account number and try again."
                    ),
                    stage=TransferStage.CANCELLED.value,
                )
            if recipient.account_id is not None and str(recipient.account_id) == str(payload.get("source_account_id")):
                self._discard(entry, "recipient is the source account")
                return TransferReply(
                    message="You cannot transfer to the same account. Please use a different account number.",
                    stage=TransferStage.CANCELLED.value,
                )
            payload["recipient"] = recipient
            entry = self._advance(entry, customer_id, payload, TransferStage.PENDING_PIN)
            if recipient.origin is RecipientOrigin.VERIFIED:
                message = (
                    f"I verified account {recipient.account_number} belongs to {recipient.name} at "
                    f"{recipient.bank_name}. Please verify your PIN to complete the transfer of {amount_text}."
                )
            else:
                message = (
                    f"Account {recipient.account_number} belongs to {recipient.name}. "
                    f"Please verify your PIN to complete the transfer of {amount_text}."
                )
            return self._pin_reply(entry, message)

        name = payload["recipient_name"]
        candidates = await self.matcher.search(customer_id, name)

        if not candidates:
            self._discard(entry, f"no recipient matching {name!r}")
            return TransferReply(
                message=(
                    f'We did not find that user "{name}". Please verify the name or try using '
                    "an account number instead."
                ),
                stage=TransferStage.CANCELLED.value,
            )

        if len(candidates) == 1:
            recipient = candidates[0]
            payload["recipient"] = recipient
            entry = self._advance(entry, customer_id, payload, TransferStage.PENDING_PIN)
            return self._pin_reply(
                entry,
                f"I found {recipient.name} with account ending in {recipient.last4}. "
                f"Please verify your PIN to complete the transfer of {amount_text}.",
            )

        payload["candidates"] = candidates
        entry = self._advance(entry, customer_id, payload, TransferStage.BENEFICIARY_SELECTION)
        endings = [c.last4 for c in candidates]
        return TransferReply(
            message=(
                f'I found {len(candidates)} people named "{name}". '
                f"Please confirm which account ending: {', '.join(endings)}?"
            ),
            pending_transaction_id=entry.id,
            required_action=RequiredAction.SELECT_BENEFICIARY.value,
            stage=entry.stage.value,
            candidates=endings,
        )

    async def _select_source_account(self, entry: PendingTransaction, reply: str) -> TransferReply:
        accounts = entry.payload["accounts"]
        endings = _endings(accounts)
        amount = entry.payload["amount"]

        def reprompt(message: str) -> TransferReply:
            return TransferReply(
                message=message,
                pending_transaction_id=entry.id,
                required_action=RequiredAction.SELECT_ACCOUNT.value,
                stage=entry.stage.value,
                candidates=endings,
            )

        index = match_selection(reply, endings)
        if index is None:
            return reprompt(f"I didn't understand. Please specify which account ending: {', '.join(endings)}?")

        chosen = accounts[index]
        async with self.session_factory() as db:
            account = await crud.get_account(db, chosen["account_id"])
        if account is None:
            return reprompt(
                f"Account ending {endings[index]} is no longer available. Your accounts end with: {', '.join(endings)}"
            )
        if Decimal(account.balance) < amount:
            return reprompt(
                f"Insufficient balance in account ending {endings[index]}. Your accounts end with: {', '.join(endings)}"
            )

        entry.payload["source_account_id"] = account.account_id
        entry.payload["currency"] = account.currency
        entry.stage = TransferStage.RECIPIENT_RESOLUTION
        logger.info("Pending transaction %s source account ending %s selected", entry.id, endings[index])
        try:
            return await self._resolve_recipient(entry.customer_id, entry.payload, entry)
        except Exception as exc:
            self._discard(entry, f"recipient resolution failed: {exc!r}")
            raise

    def _select_beneficiary(self, entry: PendingTransaction, reply: str) -> TransferReply:
        candidates: List[Recipient] = entry.payload["candidates"]
        endings = [c.last4 for c in candidates]
        index = match_selection(reply, endings)
        if index is None:
            return TransferReply(
                message=f"I didn't understand. Please confirm which account ending: {', '.join(endings)}?",
                pending_transaction_id=entry.id,
                required_action=RequiredAction.SELECT_BENEFICIARY.value,
                stage=entry.stage.value,
                candidates=endings,
            )

        selected = candidates[index]
        payload = dict(entry.payload)
        payload.pop("candidates", None)
        payload["recipient"] = selected
        self._advance(entry, entry.customer_id, payload, TransferStage.PENDING_PIN)
        amount_text = format_currency(payload["amount"], payload.get("currency", "NGN"))
        return self._pin_reply(
            entry,
            f"You selected {selected.name} with account ending in {selected.last4}. "
            f"Please verify your PIN to complete the transfer of {amount_text}.",
        )

    # ------------------------------------------------------------------
    # Transfer between the customer's own accounts
    # ------------------------------------------------------------------
    async def initiate_internal_transfer(self, customer_id: Any, parsed: ParsedRequest) -> TransferReply:
        customer_id = as_uuid(customer_id)
        if parsed.amount is None:
            return TransferReply(
                message="I need the amount to transfer. For example: 'Move 10000 to my account ending with 5685'",
                stage=TransferStage.START.value,
            )
        amount = require_positive(parsed.amount)

        accounts = await self._load_accounts(customer_id)
        if not accounts:
            return TransferReply(message="You don't have any accounts. Please create an account first.")
        if len(accounts) == 1:
            return TransferReply(
                message="You only have one account. You need at least two accounts to transfer between them."
            )

        snapshots = [_account_snapshot(a) for a in accounts]
        endings = _endings(snapshots)
        by_ending = {e: s for e, s in zip(endings, snapshots)}

        source = snapshots[0]
        if parsed.source_account_ending:
            source = by_ending.get(parsed.source_account_ending)
            if source is None:
                return TransferReply(
                    message=(
                        f"I couldn't find an account ending with {parsed.source_account_ending}. "
                        f"Your accounts end with: {', '.join(endings)}"
                    )
                )
        if source["balance"] < amount:
            return TransferReply(message=TOP_UP_MESSAGE)

        payload: Dict[str, Any] = {
            "amount": amount,
            "currency": source["currency"],
            "source_account_id": source["account_id"],
            "source_account_number": source["account_number"],
            "accounts": [s for s in snapshots if s["account_id"] != source["account_id"]],
        }
        amount_text = format_currency(amount, source["currency"])

        if parsed.target_account_ending:
            target = by_ending.get(parsed.target_account_ending)
            if target is None:
                return TransferReply(
                    message=(
                        f"I couldn't find an account ending with {parsed.target_account_ending}. "
                        f"Your accounts end with: {', '.join(endings)}"
                    )
                )
            if target["account_id"] == source["account_id"]:
                return TransferReply(message="You cannot transfer to the same account. Please select a different account.")
            payload["target_account_id"] = target["account_id"]
            payload["target_account_number"] = target["account_number"]
            entry = self._advance(
                None, customer_id, payload, TransferStage.PENDING_PIN, TransactionType.INTERNAL_TRANSFER
            )
            return self._pin_reply(
                entry,
                f"I'll transfer {amount_text} from account ending {last4(source['account_number'])} to account "
                f"ending {last4(target['account_number'])}. Please verify your PIN to complete the transfer.",
            )

        entry = self._advance(
            None, customer_id, payload, TransferStage.TARGET_ACCOUNT_SELECTION, TransactionType.INTERNAL_TRANSFER
        )
        targets = _endings(payload["accounts"])
        return TransferReply(
            message=(
                f"Which account should I transfer {amount_text} to? Accounts ending: {', '.join(targets)}?"
            ),
            pending_transaction_id=entry.id,
            required_action=RequiredAction.SELECT_TARGET_ACCOUNT.value,
            stage=entry.stage.value,
            candidates=targets,
        )

    def _select_target_account(self, entry: PendingTransaction, reply: str) -> TransferReply:
        options = entry.payload["accounts"]
        endings = _endings(options)
        index = match_selection(reply, endings)
        if index is None:
            return TransferReply(
                message=f"I didn't understand. Please specify which account ending: {', '.join(endings)}?",
                pending_transaction_id=entry.id,
                required_action=RequiredAction.SELECT_TARGET_ACCOUNT.value,
                stage=entry.stage.value,
                candidates=endings,
            )
        target = options[index]
        payload = dict(entry.payload)
        payload["target_account_id"] = target["account_id"]
        payload["target_account_number"] = target["account_number"]
        self._advance(entry, entry.customer_id, payload, TransferStage.PENDING_PIN, entry.type)
        amount_text = format_currency(payload["amount"], payload.get("currency", "NGN"))
        return self._pin_reply(
            entry,
            f"I'll transfer {amount_text} from account ending {last4(payload['source_account_number'])} to "
            f"account ending {endings[index]}. Please verify your PIN to complete the transfer.",
        )

    # ------------------------------------------------------------------
    # Follow-up turns
    # ------------------------------------------------------------------
    async def submit_selection(self, pending_id: str, customer_id: Any, reply: str) -> TransferReply:
        async with self.store.locked(pending_id):
            entry = self._load_owned(pending_id, customer_id)
            if entry.stage is TransferStage.ACCOUNT_SELECTION:
                return await self._select_source_account(entry, reply)
            if entry.stage is TransferStage.BENEFICIARY_SELECTION:
                return self._select_beneficiary(entry, reply)
            if entry.stage is TransferStage.TARGET_ACCOUNT_SELECTION:
                return self._select_target_account(entry, reply)
            if entry.stage is TransferStage.PENDING_PIN:
                return self._pin_reply(entry, "Please verify your PIN to complete the transfer.")
            self._discard(entry, "no selection expected at this stage")
            return TransferReply(
                message="This transaction can no longer continue. Please start a new transfer.",
                stage=TransferStage.CANCELLED.value,
            )

    async def _execute(self, entry: PendingTransaction) -> LedgerEntry:
        payload = entry.payload
        if entry.type is TransactionType.INTERNAL_TRANSFER:
            return await self.executor.internal_transfer(
                entry.customer_id,
                payload["source_account_id"],
                payload["target_account_id"],
                payload["amount"],
            )
        return await self.executor.transfer(payload["source_account_id"], payload["recipient"], payload["amount"])

    def _receipt_message(self, entry: PendingTransaction, receipt: LedgerEntry) -> str:
        payload = entry.payload
        amount_text = format_currency(payload["amount"], payload.get("currency", "NGN"))
        if entry.type is TransactionType.INTERNAL_TRANSFER:
            return (
                f"Transfer of {amount_text} from account ending {last4(payload['source_account_number'])} "
                f"to account ending {last4(payload['target_account_number'])} completed successfully! "
                f"Reference: {receipt.reference}"
            )
        recipient: Recipient = payload["recipient"]
        return (
            f"Transfer of {amount_text} to {recipient.name} has been completed successfully! "
            f"Reference: {receipt.reference}"
        )

    async def confirm_pin(self, pending_id: str, customer_id: Any, pin: str) -> PinConfirmation:
        async with self.store.locked(pending_id):
            entry = self._load_owned(pending_id, customer_id)
            if entry.stage is not TransferStage.PENDING_PIN:
                return PinConfirmation(
                    message="This transaction still needs your selection before it can be confirmed.",
                    executed=False,
                )
            if not pin or not pin.strip():
                raise ValidationError("PIN is required")

            try:
                verified = await self.pin_verifier.verify(entry.customer_id, pin.strip())
            except VoxPayError:
                raise
            except Exception as exc:
                logger.exception("PIN verification failed for pending transaction %s", entry.id)
                raise ExternalServiceError("PIN verification is currently unavailable") from exc

            if not verified:
                entry.pin_attempts += 1
                remaining = self.pin_max_attempts - entry.pin_attempts
                if remaining <= 0:
                    self._discard(entry, f"invalid PIN ({entry.pin_attempts} attempts)")
                    return PinConfirmation(
                        message="Invalid PIN. This transaction has been cancelled; please start again.",
                        executed=False,
                    )
                logger.info("Invalid PIN for pending transaction %s (%d left)", entry.id, remaining)
                return PinConfirmation(
                    message=f"Invalid PIN. Please try again ({remaining} attempt(s) left).",
                    executed=False,
                )

            try:
                receipt = await self._execute(entry)
            except InsufficientBalance:
                self._discard(entry, "insufficient balance at execution")
                return PinConfirmation(message="Insufficient balance. Please top up your account.", executed=False)
            except VoxPayError as exc:
                self._discard(entry, f"execution failed: {exc}")
                return PinConfirmation(
                    message="The transfer could not be completed. Please try again later.",
                    executed=False,
                )
            except Exception:
                self._discard(entry, "unexpected execution error")
                raise

            self.store.delete(entry.id)
            logger.info("Pending transaction %s executed ref=%s", entry.id, receipt.reference)
            return PinConfirmation(
                message=self._receipt_message(entry, receipt),
                executed=True,
                reference=receipt.reference,
            )
