"""
GrantApplier: durable effect of a settled purchase.

Order: write ledgers + mark payment granted -> commit -> invalidate cache.
The cache is only cleared once the entitlement is durable, so the next
resolve() can never re-cache a pre-purchase decision.
Storage errors raise LedgerWriteError: a paying client must never be told
"success" without a committed grant.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import LedgerWriteError, PaymentValidationError
from app.db.upsert import insert_for
from app.models.payment import Payment
from app.models.subscription import Subscription
from app.paywall.audit import record_grant
from app.paywall.cache import StatusCache
from app.paywall.unlocks import UnlockLedger
from app.referral.service import ReferralAccessService
from app.services.payments.models import PaymentPurpose
from app.services.payments.pricing import get_subscription_period, price_for
from app.utils.dates import as_utc, utc_now
from app.utils.metrics import grants_applied_total

logger = logging.getLogger(__name__)


class GrantApplier:
    def __init__(
        self,
        db: Session,
        cache: StatusCache,
        unlocks: UnlockLedger | None = None,
        referral: ReferralAccessService | None = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.cache = cache
        self.unlocks = unlocks or UnlockLedger(db)
        self.referral = referral or ReferralAccessService(db, now=now)
        self._now = now

    def apply_grant(
        self,
        client_id: str,
        purpose: PaymentPurpose,
        reference: str,
        provider_id: str | None = None,
    ) -> bool:
        """
        Apply the purchase effect for a completed payment.
        Returns True when the grant is (now or already) durable, False when the
        payment is known and not completed.
        """
        purpose = PaymentPurpose(purpose)
        if purpose == PaymentPurpose.CONTACT_UNLOCK and not provider_id:
            raise PaymentValidationError("provider_id is required for contact unlock", field="provider_id")

        payment = (
            self.db.query(Payment)
            .filter(Payment.reference == reference)
            .populate_existing()
            .one_or_none()
        )
        if payment is not None:
            if payment.granted_at is not None:
                logger.info("grant_already_applied", extra={"reference": reference, "client_id": client_id})
                return True
            if payment.status != "completed":
                logger.warning(
                    "grant_refused_unsettled_payment",
                    extra={"reference": reference, "status": payment.status},
                )
                return False
        else:
            logger.warning("grant_without_payment_record", extra={"reference": reference, "client_id": client_id})

        amount = payment.amount if payment is not None else price_for(purpose)
        method = payment.payment_method if payment is not None else None
        now = self._now()

        try:
            if purpose == PaymentPurpose.SUBSCRIPTION:
                self._upsert_subscription(client_id, amount, now)
            elif purpose == PaymentPurpose.CONTACT_UNLOCK:
                self.unlocks.grant_unlock(client_id, provider_id, amount, reference=reference)
            else:
                self.referral.grant(client_id, amount, method or "mobile_money", reference=reference)

            if payment is not None:
                payment.granted_at = now
                self.db.add(payment)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "grant_write_failed",
                extra={"reference": reference, "client_id": client_id, "purpose": purpose.value, "error": str(e)},
            )
            raise LedgerWriteError(f"Could not apply {purpose.value} grant: {e}") from e

        latency = None
        if payment is not None and payment.created_at is not None:
            latency = (now - as_utc(payment.created_at)).total_seconds()
        record_grant(
            client_id,
            purpose.value,
            reference,
            amount=amount,
            method=method,
            provider_id=provider_id,
            settlement_latency_seconds=latency,
        )
        grants_applied_total.labels(purpose=purpose.value).inc()

        self.cache.invalidate(client_id)
        return True

    def _upsert_subscription(self, client_id: str, amount: int, now: datetime) -> None:
        end = now + get_subscription_period()
        stmt = (
            insert_for(self.db, Subscription)
            .values(
                user_id=client_id,
                active=True,
                plan=settings.subscription_plan,
                amount=amount,
                start_date=now,
                end_date=end,
            )
            .on_conflict_do_update(
                index_elements=["user_id"],
                set_={
                    "active": True,
                    "plan": settings.subscription_plan,
                    "amount": amount,
                    "start_date": now,
                    "end_date": end,
                    "updated_at": now,
                },
            )
        )
        self.db.execute(stmt)
        logger.info(
            "subscription_activated",
            extra={"client_id": client_id, "amount": amount, "status": "active"},
        )

    def cancel_subscription(self, client_id: str) -> bool:
        """Deactivate; the row stays for history. False when there is nothing to cancel."""
        try:
            res = self.db.execute(
                update(Subscription)
                .where(Subscription.user_id == client_id, Subscription.active.is_(True))
                .values(active=False, updated_at=self._now())
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("subscription_cancel_failed", extra={"client_id": client_id, "error": str(e)})
            raise LedgerWriteError(f"Could not cancel subscription: {e}") from e

        if res.rowcount == 0:
            return False
        logger.info("subscription_cancelled", extra={"client_id": client_id})
        self.cache.invalidate(client_id)
        return True
