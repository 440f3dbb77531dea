"""
Errors surfaced to callers of the access/payment engine.

Settlement failures and timeouts are NOT exceptions: they are terminal
states of a PaymentSession.
"""
from typing import Any


class PaymentValidationError(ValueError):
    """Bad input (phone format, missing provider, card details). Raised before any I/O."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InitiationError(Exception):
    """Processor rejected or could not receive the charge request. No session is kept."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class InvalidTransitionError(Exception):
    """Attempted PaymentSession transition that the state machine forbids."""


class LedgerWriteError(Exception):
    """Storage failed while persisting a grant. Must reach the caller."""
