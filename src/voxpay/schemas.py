from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .nlu.request import ParsedRequest


class TransferReply(BaseModel):
    message: str
    pending_transaction_id: Optional[str] = None
    required_action: Optional[str] = None
    stage: Optional[str] = None
    candidates: List[str] = Field(default_factory=list)


class PinConfirmation(BaseModel):
    message: str
    executed: bool
    reference: Optional[str] = None


class InitiateTransferIn(BaseModel):
    customer_id: str
    request: ParsedRequest


class TransferMessageIn(BaseModel):
    customer_id: str
    message: str = Field(..., min_length=1, examples=["Send 10000 to Sarah Mohammed"])


class SelectionIn(BaseModel):
    customer_id: str
    reply: str = Field(..., min_length=1, examples=["2222"])


class PinIn(BaseModel):
    customer_id: str
    pin: str = Field(..., min_length=1)


class InternalTransferIn(BaseModel):
    customer_id: str
    amount: Optional[Decimal] = Field(None, examples=[5000])
    source_account_ending: Optional[str] = None
    target_account_ending: Optional[str] = None


class VerifiedAccountOut(BaseModel):
    account_name: str
    account_number: str
    bank_name: str
    bank_code: str


class RecipientOut(BaseModel):
    name: str
    account_number: str
    bank_name: Optional[str] = None
    last4: str
    origin: str
    beneficiary_id: Optional[str] = None
    customer_id: Optional[str] = None
    account_id: Optional[str] = None
