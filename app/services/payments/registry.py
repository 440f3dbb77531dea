"""
SettlementRegistry: one background settlement task per waiting reference.

Each task opens its own DB session (the request session is gone by the time
the processor answers). cancel() is what the payment dialog calls when it is
closed; the session then stays waiting_approval and the Payment row pending
until POST /payments/{reference}/verify asks the processor again.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from app.core.errors import LedgerWriteError
from app.db.session import SessionLocal
from app.paywall.cache import StatusCache
from app.services.grants.service import GrantApplier
from app.services.payments.poller import SettlementPoller
from app.services.payments.processor import PaymentProcessor
from app.services.payments.service import PaymentService
from app.services.payments.session import PaymentSession

logger = logging.getLogger(__name__)


class SettlementRegistry:
    def __init__(
        self,
        processor: PaymentProcessor,
        cache: StatusCache,
        session_factory: Callable[[], Session] = SessionLocal,
        poller: SettlementPoller | None = None,
    ) -> None:
        self.processor = processor
        self.cache = cache
        self.session_factory = session_factory
        self.poller = poller
        self._tasks: dict[str, asyncio.Task] = {}

    def start(self, session: PaymentSession) -> asyncio.Task:
        """Must be called from a running event loop."""
        existing = self._tasks.get(session.reference)
        if existing is not None and not existing.done():
            return existing
        task = asyncio.create_task(self._run(session), name=f"settle:{session.reference}")
        self._tasks[session.reference] = task
        task.add_done_callback(lambda t, ref=session.reference: self._forget(ref, t))
        return task

    def _forget(self, reference: str, task: asyncio.Task) -> None:
        if self._tasks.get(reference) is task:
            del self._tasks[reference]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "settlement_task_crashed",
                extra={"reference": reference, "error": repr(exc)},
                exc_info=exc,
            )

    def is_running(self, reference: str) -> bool:
        task = self._tasks.get(reference)
        return task is not None and not task.done()

    def cancel(self, reference: str) -> bool:
        task = self._tasks.get(reference)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, session: PaymentSession) -> None:
        db = self.session_factory()
        try:
            service = PaymentService(
                db,
                self.processor,
                GrantApplier(db, self.cache),
                poller=self.poller,
            )
            await service.await_settlement(session)
        except LedgerWriteError:
            # Payment stays completed with granted_at unset; POST /payments/{reference}/grant retries.
            logger.exception(
                "settlement_grant_failed",
                extra={"reference": session.reference, "client_id": session.client_id},
            )
        except Exception:
            # Row stays pending; POST /payments/{reference}/verify reconciles it.
            logger.exception(
                "settlement_failed",
                extra={"reference": session.reference, "client_id": session.client_id},
            )
        finally:
            db.close()
