from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ParsedRequest(BaseModel):
    """
    Structured output of the intent extractor for a money-movement request.
    """

    amount: Optional[Decimal] = Field(None, examples=[10000])
    recipient_name: Optional[str] = Field(None, examples=["Sarah Mohammed"])
    account_number: Optional[str] = Field(None, examples=["0123456789"])
    institution_code: Optional[str] = Field(None, examples=["058"])
    source_account_ending: Optional[str] = None
    target_account_ending: Optional[str] = None
    confidence: float = Field(1.0, ge=0.0, le=1.0)

    @field_validator("recipient_name", "account_number", "institution_code", "source_account_ending", "target_account_ending")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None
