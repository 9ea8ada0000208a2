"""
Bank Verification Client
Resolves (account number, bank code) to the account holder via Paystack.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from ..banks.catalog import BANK_CATALOG, BankCatalog
from ..exceptions import BankVerificationError

logger = logging.getLogger("voxpay.clients.bank_verification")


@dataclass(frozen=True)
class VerifiedAccount:
    account_name: str
    account_number: str
    bank_name: str
    bank_code: str


class BankVerificationClient(Protocol):
    async def verify(self, account_number: str, bank_code: str) -> VerifiedAccount:
        ...


class PaystackVerificationClient:
    """
    HTTP client for the Paystack account-resolution API
    """

    def __init__(
        self,
        secret_key: Optional[str],
        base_url: str = "https://api.paystack.co",
        timeout: float = 10.0,
        catalog: BankCatalog = BANK_CATALOG,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.catalog = catalog
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def verify(self, account_number: str, bank_code: str) -> VerifiedAccount:
        if not self.secret_key:
            raise BankVerificationError("Paystack API key not configured")

        try:
            response = await self.client.get(
                f"{self.base_url}/bank/resolve",
                params={"account_number": account_number, "bank_code": bank_code},
                headers={"Authorization": f"Bearer {self.secret_key}"},
            )
        except httpx.HTTPError as exc:
            raise BankVerificationError(f"Paystack request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400 or not payload.get("status"):
            message = payload.get("message") or f"HTTP {response.status_code}"
            raise BankVerificationError(f"Verification failed: {message}")

        data = payload.get("data") or {}
        logger.info("Verified account %s at bank %s", account_number, bank_code)
        return VerifiedAccount(
            account_name=data.get("account_name", ""),
            account_number=data.get("account_number", account_number),
            bank_name=self.catalog.name_for(bank_code),
            bank_code=bank_code,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
