"""
PaymentSession: one attempted charge, from creation to settlement.

    idle -> created -> waiting_approval -> completed | failed | timed_out
    created -> idle        (initiation failed, nothing kept)
    created -> completed   (card, simulated acquirer)

Terminal states are final: a retry is a new session with a new reference.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.core.errors import InvalidTransitionError
from app.services.payments.models import (
    TERMINAL_STATUSES,
    MobileOperator,
    PaymentMethod,
    PaymentPurpose,
    SessionStatus,
)
from app.utils.dates import utc_now

ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IDLE: frozenset({SessionStatus.CREATED}),
    SessionStatus.CREATED: frozenset({
        SessionStatus.IDLE,
        SessionStatus.WAITING_APPROVAL,
        SessionStatus.COMPLETED,
    }),
    SessionStatus.WAITING_APPROVAL: frozenset({
        SessionStatus.COMPLETED,
        SessionStatus.FAILED,
        SessionStatus.TIMED_OUT,
    }),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
    SessionStatus.TIMED_OUT: frozenset(),
}


@dataclass
class PaymentSession:
    client_id: str
    purpose: PaymentPurpose
    method: PaymentMethod
    amount: int
    phone: str | None = None
    operator: MobileOperator | None = None
    provider_id: str | None = None
    reference: str | None = None
    status: SessionStatus = SessionStatus.IDLE
    failure_reason: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    settled_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, new_status: SessionStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"payment session {self.reference or '<unsent>'}: "
                f"{self.status.value} -> {new_status.value} is not allowed"
            )
        self.status = new_status
        if new_status in TERMINAL_STATUSES:
            self.settled_at = utc_now()

    def create(self) -> None:
        self._transition(SessionStatus.CREATED)

    def abandon(self) -> None:
        """Initiation failed: back to idle, no reference kept."""
        self._transition(SessionStatus.IDLE)
        self.reference = None

    def await_approval(self, reference: str) -> None:
        if not reference:
            raise InvalidTransitionError("a processor reference is required to wait for approval")
        self._transition(SessionStatus.WAITING_APPROVAL)
        self.reference = reference

    def complete_directly(self, reference: str) -> None:
        """Card path: no approval step."""
        if self.method != PaymentMethod.CARD:
            raise InvalidTransitionError("only card sessions complete without approval")
        self.reference = reference
        self._transition(SessionStatus.COMPLETED)

    def complete(self) -> None:
        self._transition(SessionStatus.COMPLETED)

    def fail(self, reason: str) -> None:
        self._transition(SessionStatus.FAILED)
        self.failure_reason = reason

    def time_out(self, message: str) -> None:
        self._transition(SessionStatus.TIMED_OUT)
        self.failure_reason = message
