"""
NUBAN-style bank detection and account resolution.

A 10-digit account number carries a weighted check digit computed over the
issuing institution's code followed by the first nine digits. Running the
checksum against every catalog code narrows an unqualified account number
down to a few candidate banks, which are then confirmed one by one with the
bank verification service.
"""

import logging
from typing import List, Optional

from ..clients.bank_verification import BankVerificationClient, VerifiedAccount
from ..exceptions import AccountNotResolvable, ValidationError
from .catalog import BANK_CATALOG, FINTECH_FALLBACK_CODES, FINTECH_PREFIXES, BankCatalog, BankCatalogEntry

logger = logging.getLogger("voxpay.resolver")

NUBAN_WEIGHTS = (3, 7, 3, 3, 7, 3, 3, 7, 3, 3, 7, 3)
ACCOUNT_NUMBER_LENGTH = 10


def _checksum_digit(institution_code: str, serial: str) -> Optional[int]:
    digits = institution_code + serial
    if not digits.isdigit():
        return None
    total = sum(int(d) * NUBAN_WEIGHTS[i % len(NUBAN_WEIGHTS)] for i, d in enumerate(digits))
    return (10 - (total % 10)) % 10


def checksum_valid(account_number: str, institution_code: str) -> bool:
    if not isinstance(account_number, str) or len(account_number) != ACCOUNT_NUMBER_LENGTH:
        return False
    if not account_number.isdigit() or not institution_code:
        return False
    expected = _checksum_digit(institution_code, account_number[:9])
    return expected is not None and expected == int(account_number[9])


def build_account_number(institution_code: str, serial: str) -> str:
    """
    Append the check digit for ``institution_code`` to a 9-digit serial.
    """
    if len(serial) != ACCOUNT_NUMBER_LENGTH - 1 or not serial.isdigit():
        raise ValidationError("Serial must be exactly 9 digits")
    digit = _checksum_digit(institution_code, serial)
    if digit is None:
        raise ValidationError(f"Invalid institution code: {institution_code!r}")
    return f"{serial}{digit}"


def detect_candidates(account_number: str, catalog: BankCatalog = BANK_CATALOG) -> List[BankCatalogEntry]:
    if not isinstance(account_number, str) or len(account_number) != ACCOUNT_NUMBER_LENGTH:
        return []
    return [entry for entry in catalog if checksum_valid(account_number, entry.code)]


class AccountResolver:
    """
    Resolves a raw account number to a verified holder and bank.
    """

    def __init__(self, verifier: BankVerificationClient, catalog: BankCatalog = BANK_CATALOG):
        self.verifier = verifier
        self.catalog = catalog

    def detect_candidates(self, account_number: str) -> List[BankCatalogEntry]:
        return detect_candidates(account_number, self.catalog)

    async def resolve(self, account_number: str, institution_code: Optional[str] = None) -> VerifiedAccount:
        account_number = (account_number or "").strip()
        if len(account_number) != ACCOUNT_NUMBER_LENGTH or not account_number.isdigit():
            raise ValidationError("Account number must be exactly 10 digits")

        if institution_code:
            try:
                return await self.verifier.verify(account_number, institution_code)
            except Exception as exc:
                logger.info("Verification failed account=%s code=%s: %s", account_number, institution_code, exc)
                raise AccountNotResolvable(account_number, exc) from exc

        candidates = self.detect_candidates(account_number)
        logger.info(
            "NUBAN candidates for %s: %s",
            account_number,
            [c.code for c in candidates],
        )

        last_error: Optional[BaseException] = None
        tried = set()
        for entry in candidates:
            tried.add(entry.code)
            try:
                return await self.verifier.verify(account_number, entry.code)
            except Exception as exc:
                logger.info("Candidate %s (%s) rejected %s: %s", entry.name, entry.code, account_number, exc)
                last_error = exc

        if account_number[:2] in FINTECH_PREFIXES:
            for code in FINTECH_FALLBACK_CODES:
                if code in tried:
                    continue
                try:
                    return await self.verifier.verify(account_number, code)
                except Exception as exc:
                    logger.info("Fintech fallback %s rejected %s: %s", code, account_number, exc)
                    last_error = exc

        logger.warning(
            "Account %s not resolvable (candidates=%d, last_error=%s)",
            account_number,
            len(candidates),
            last_error,
        )
        raise AccountNotResolvable(account_number, last_error)
