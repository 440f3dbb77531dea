"""
UnlockLedger: permanent per-(client, provider) contact reveals.

grant_unlock is an idempotent upsert: settlement can be observed more than once
(retries, duplicate notifications) without creating a second row. It does not
commit; the Grant Applier commits the grant together with the payment mark.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import LedgerWriteError
from app.db.upsert import insert_for
from app.models.contact_unlock import ContactUnlock

logger = logging.getLogger(__name__)


class UnlockLedger:
    def __init__(self, db: Session):
        self.db = db

    def has_unlock(self, client_id: str, provider_id: str) -> bool:
        if not client_id:
            return False
        row = (
            self.db.query(ContactUnlock.id)
            .filter(
                ContactUnlock.client_id == client_id,
                ContactUnlock.provider_id == provider_id,
            )
            .first()
        )
        return row is not None

    def grant_unlock(
        self,
        client_id: str,
        provider_id: str,
        amount: int,
        reference: str | None = None,
    ) -> ContactUnlock:
        stmt = (
            insert_for(self.db, ContactUnlock)
            .values(
                client_id=client_id,
                provider_id=provider_id,
                amount=amount,
                payment_reference=reference,
            )
            .on_conflict_do_nothing(index_elements=["client_id", "provider_id"])
        )
        try:
            res = self.db.execute(stmt)
            unlock = (
                self.db.query(ContactUnlock)
                .filter(
                    ContactUnlock.client_id == client_id,
                    ContactUnlock.provider_id == provider_id,
                )
                .one()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "contact_unlock_write_failed",
                extra={"client_id": client_id, "provider_id": provider_id, "error": str(e)},
            )
            raise LedgerWriteError(f"Could not record contact unlock: {e}") from e

        if res.rowcount == 0:
            logger.info(
                "contact_unlock_already_granted",
                extra={"client_id": client_id, "provider_id": provider_id, "reference": reference},
            )
        else:
            logger.info(
                "contact_unlock_granted",
                extra={
                    "client_id": client_id,
                    "provider_id": provider_id,
                    "amount": amount,
                    "reference": reference,
                },
            )
        return unlock

    def list_unlocked_providers(self, client_id: str) -> list[str]:
        rows = (
            self.db.query(ContactUnlock.provider_id)
            .filter(ContactUnlock.client_id == client_id)
            .order_by(ContactUnlock.unlocked_at.desc())
            .all()
        )
        return [r[0] for r in rows]
