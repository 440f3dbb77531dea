"""
PaymentService: drives one purchase from the caller's request to a settled,
granted outcome.

Responsibilities:
- Validate input before any I/O (phone/operator, card, provider)
- Initiate the charge with the processor and record it locally
- Await settlement through the SettlementPoller
- Hand completed payments to the GrantApplier exactly once per reference
"""
import asyncio
import logging
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InitiationError, InvalidTransitionError, PaymentValidationError
from app.models.payment import Payment
from app.services.grants.service import GrantApplier
from app.services.payments.failure_reasons import TIMED_OUT_MESSAGE, extract_failure_reason
from app.services.payments.models import (
    InitiationRequest,
    PaymentDetails,
    PaymentMethod,
    PaymentPurpose,
    SessionStatus,
)
from app.services.payments.poller import SettlementPoller
from app.services.payments.pricing import price_for
from app.services.payments.processor import PaymentProcessor, ProcessorError
from app.services.payments.session import PaymentSession
from app.services.payments.validation import validate_card, validate_mobile_money
from app.utils.dates import utc_now
from app.utils.metrics import (
    active_settlement_polls,
    payment_initiation_failures_total,
    payment_settlements_total,
    payment_status_queries_total,
    payments_initiated_total,
    settlement_duration_seconds,
)

logger = logging.getLogger(__name__)

# Local rows the processor may still settle. A local timeout says nothing about the charge.
RECONCILABLE_STATUSES = frozenset({"pending", "timed_out"})


class PaymentService:
    def __init__(
        self,
        db: Session,
        processor: PaymentProcessor,
        grants: GrantApplier,
        poller: SettlementPoller | None = None,
    ):
        self.db = db
        self.processor = processor
        self.grants = grants
        self.poller = poller or SettlementPoller(processor)

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start_payment(
        self,
        client_id: str,
        purpose: PaymentPurpose,
        method: PaymentMethod,
        details: PaymentDetails,
        amount: int | None = None,
    ) -> PaymentSession:
        """
        idle -> created -> waiting_approval (mobile money) or completed (card).
        Raises PaymentValidationError before any network call, InitiationError
        when the processor refuses; in both cases nothing is kept.
        """
        purpose = PaymentPurpose(purpose)
        method = PaymentMethod(method)
        try:
            session = self._new_session(client_id, purpose, method, details, amount)
        except PaymentValidationError as e:
            payment_initiation_failures_total.labels(stage="validation").inc()
            logger.info(
                "payment_validation_failed",
                extra={"client_id": client_id, "purpose": purpose.value, "error": str(e)},
            )
            raise

        if method == PaymentMethod.CARD:
            # Simulated acquirer boundary: no approval step.
            session.complete_directly(f"card_{uuid4().hex}")
            self._record(session, details.email)
        else:
            self._initiate(session, details.email)

        payments_initiated_total.labels(purpose=purpose.value, method=method.value).inc()
        logger.info(
            "payment_initiated",
            extra={
                "client_id": client_id,
                "reference": session.reference,
                "purpose": purpose.value,
                "method": method.value,
                "operator": session.operator.value if session.operator else None,
                "amount": session.amount,
                "status": session.status.value,
            },
        )
        return session

    def _new_session(
        self,
        client_id: str,
        purpose: PaymentPurpose,
        method: PaymentMethod,
        details: PaymentDetails,
        amount: int | None,
    ) -> PaymentSession:
        if not client_id:
            raise PaymentValidationError("Sign in to make a payment", field="client_id")
        if purpose == PaymentPurpose.CONTACT_UNLOCK and not details.provider_id:
            raise PaymentValidationError("Provider is required to unlock a contact", field="provider_id")

        price = price_for(purpose)
        if amount is not None and amount != price:
            raise PaymentValidationError(f"Amount must be K{price}", field="amount")

        session = PaymentSession(
            client_id=client_id,
            purpose=purpose,
            method=method,
            amount=price,
            provider_id=details.provider_id if purpose == PaymentPurpose.CONTACT_UNLOCK else None,
        )
        if method == PaymentMethod.MOBILE_MONEY:
            session.phone, session.operator = validate_mobile_money(details.phone, details.operator)
        else:
            validate_card(details)
        session.create()
        return session

    def _initiate(self, session: PaymentSession, email: str | None) -> None:
        request = InitiationRequest(
            client_id=session.client_id,
            purpose=session.purpose,
            amount=session.amount,
            phone=session.phone,
            operator=session.operator,
            provider_id=session.provider_id,
            email=email,
        )
        try:
            reference = self.processor.initiate(request)
        except InitiationError as e:
            session.abandon()
            payment_initiation_failures_total.labels(stage="processor").inc()
            logger.warning(
                "payment_initiation_failed",
                extra={"client_id": session.client_id, "purpose": session.purpose.value, "error": str(e)},
            )
            raise
        session.await_approval(reference)
        self._record(session, email)

    def _record(self, session: PaymentSession, email: str | None) -> None:
        """Local copy of the processor transaction. The processor stays authoritative."""
        payment = Payment(
            reference=session.reference,
            user_id=session.client_id,
            purpose=session.purpose.value,
            payment_method=session.method.value,
            amount=session.amount,
            phone=session.phone,
            operator=session.operator.value if session.operator else None,
            provider_id=session.provider_id,
            status="completed" if session.status == SessionStatus.COMPLETED else "pending",
            completed_at=session.settled_at,
        )
        try:
            self.db.add(payment)
            self.db.commit()
        except SQLAlchemyError:
            # The charge is already out at the processor.
            self.db.rollback()
            logger.exception(
                "payment_record_failed",
                extra={"reference": session.reference, "client_id": session.client_id},
            )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_card(self, session: PaymentSession) -> SessionStatus:
        """Card sessions are completed at start; only the grant remains. Blocking."""
        if session.status != SessionStatus.COMPLETED:
            raise InvalidTransitionError(f"cannot grant a session in state {session.status.value}")
        self._apply_grant(session)
        return session.status

    async def await_settlement(self, session: PaymentSession) -> SessionStatus:
        """
        Poll until terminal, persist the outcome, apply the grant on completion.
        Cancelling the awaiting task leaves the session in waiting_approval.
        LedgerWriteError from the grant propagates.
        """
        if session.status == SessionStatus.COMPLETED:
            return await asyncio.to_thread(self.settle_card, session)
        if session.is_terminal:
            return session.status
        if session.status != SessionStatus.WAITING_APPROVAL:
            raise InvalidTransitionError(f"cannot settle a session in state {session.status.value}")

        active_settlement_polls.inc()
        try:
            result = await self.poller.poll(session.reference)
        except asyncio.CancelledError:
            logger.info(
                "settlement_poll_cancelled",
                extra={"reference": session.reference, "client_id": session.client_id},
            )
            raise
        finally:
            active_settlement_polls.dec()

        if result.status == SessionStatus.COMPLETED:
            session.complete()
        elif result.status == SessionStatus.FAILED:
            session.fail(extract_failure_reason(result.message))
        else:
            session.time_out(TIMED_OUT_MESSAGE)

        payment_settlements_total.labels(purpose=session.purpose.value, status=session.status.value).inc()
        settlement_duration_seconds.labels(status=session.status.value).observe(
            (session.settled_at - session.created_at).total_seconds()
        )
        logger.info(
            "payment_settled",
            extra={
                "reference": session.reference,
                "client_id": session.client_id,
                "status": session.status.value,
                "attempt": result.attempts,
                "reason": session.failure_reason,
            },
        )

        self._persist_outcome(session)
        if session.status == SessionStatus.COMPLETED:
            self._apply_grant(session)
        return session.status

    def _persist_outcome(self, session: PaymentSession) -> None:
        try:
            payment = self.get_payment(session.reference)
            if payment is None:
                return
            payment.status = session.status.value
            payment.failure_reason = session.failure_reason
            if session.status == SessionStatus.COMPLETED:
                payment.completed_at = session.settled_at
            self.db.add(payment)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("payment_outcome_record_failed", extra={"reference": session.reference})

    def _apply_grant(self, session: PaymentSession) -> None:
        self.grants.apply_grant(
            session.client_id,
            session.purpose,
            session.reference,
            provider_id=session.provider_id,
        )

    # ------------------------------------------------------------------
    # Queries / explicit retry
    # ------------------------------------------------------------------

    def get_payment(self, reference: str) -> Payment | None:
        return (
            self.db.query(Payment)
            .filter(Payment.reference == reference)
            .populate_existing()
            .one_or_none()
        )

    def get_user_payments(self, user_id: str, limit: int = 50) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc())
            .limit(limit)
            .all()
        )

    def verify_payment(self, reference: str, client_id: str) -> Payment | None:
        """
        One-shot reconciliation with the processor for a payment nobody is polling
        any more, e.g. after the dialog was closed.
        A completed answer settles the row and applies the grant; a pending one or an
        unanswered query leaves the row as it is. LedgerWriteError propagates.
        Returns None for an unknown or foreign reference.
        """
        payment = self.get_payment(reference)
        if payment is None or payment.user_id != client_id:
            return None
        if payment.status == "completed":
            if payment.granted_at is None:
                self.retry_grant(reference, client_id)
            return self.get_payment(reference)
        if payment.status not in RECONCILABLE_STATUSES:
            return payment

        try:
            answer = self.processor.get_status(reference)
        except ProcessorError as e:
            payment_status_queries_total.labels(result="error").inc()
            logger.warning("payment_verify_failed", extra={"reference": reference, "error": str(e)})
            return payment

        payment_status_queries_total.labels(result=answer.status).inc()
        if answer.status == "pending":
            return payment

        previous = payment.status
        payment.status = answer.status
        if answer.status == "completed":
            payment.completed_at = utc_now()
            payment.failure_reason = None
        else:
            payment.failure_reason = extract_failure_reason(answer.message)
        try:
            self.db.add(payment)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("payment_outcome_record_failed", extra={"reference": reference})
            return self.get_payment(reference)

        payment_settlements_total.labels(purpose=payment.purpose, status=payment.status).inc()
        logger.info(
            "payment_verified",
            extra={
                "reference": reference,
                "client_id": client_id,
                "status": payment.status,
                "previous_status": previous,
                "reason": payment.failure_reason,
            },
        )
        if payment.status == "completed":
            self.grants.apply_grant(
                payment.user_id,
                PaymentPurpose(payment.purpose),
                payment.reference,
                provider_id=payment.provider_id,
            )
        return self.get_payment(reference)

    def retry_grant(self, reference: str, client_id: str) -> bool:
        """User-initiated retry for a completed payment whose grant failed to persist."""
        payment = self.get_payment(reference)
        if payment is None or payment.user_id != client_id:
            return False
        return self.grants.apply_grant(
            payment.user_id,
            PaymentPurpose(payment.purpose),
            payment.reference,
            provider_id=payment.provider_id,
        )

