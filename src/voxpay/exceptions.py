"""Exception hierarchy for the transfer engine."""

from typing import Optional


class VoxPayError(Exception):
    """Base exception for all VoxPay errors."""


class ConfigurationError(VoxPayError):
    """Raised when configuration is invalid or missing."""


class ValidationError(VoxPayError):
    """Raised for a malformed amount, account number or request."""


class NotFound(VoxPayError):
    """Raised when a pending transaction, account or customer does not exist."""


class Unauthorized(VoxPayError):
    """Raised when a customer acts on a pending transaction it does not own."""


class InsufficientBalance(VoxPayError):
    """Raised when the source account cannot cover the amount at execution time."""


class SameAccount(VoxPayError):
    """Raised when source and target of a transfer are the same account."""


class ExternalServiceError(VoxPayError):
    """Raised when a collaborator (verification, persistence) fails."""


class BankVerificationError(ExternalServiceError):
    """Raised by the bank verification client when an account cannot be verified."""


class AccountNotResolvable(VoxPayError):
    """Raised when every verification attempt for an account number failed."""

    def __init__(self, account_number: str, last_error: Optional[BaseException] = None):
        self.account_number = account_number
        self.last_error = last_error
        detail = str(last_error) if last_error else "no matching bank found"
        super().__init__(f"Could not resolve account {account_number}: {detail}")
