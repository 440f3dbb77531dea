"""
SettlementPoller: asks the processor for a reference's status on a fixed
interval until it is completed/failed or the attempt budget runs out.

Each attempt sleeps first, so queries are never closer than `interval` apart.
The blocking HTTP call runs in a worker thread; the event loop stays free.
Cancel the surrounding task to stop polling: that says nothing about the
real payment, so it is never reported as failed.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from app.core.config import settings
from app.services.payments.models import SessionStatus, SettlementResult
from app.services.payments.processor import PaymentProcessor, ProcessorError
from app.utils.metrics import payment_status_queries_total

logger = logging.getLogger(__name__)


class SettlementPoller:
    def __init__(
        self,
        processor: PaymentProcessor,
        interval: float | None = None,
        max_attempts: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.processor = processor
        self.interval = interval if interval is not None else settings.payment_poll_interval_seconds
        self.max_attempts = max_attempts if max_attempts is not None else settings.payment_poll_max_attempts
        self._sleep = sleep

    async def poll(
        self,
        reference: str,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> SettlementResult:
        budget = max_attempts if max_attempts is not None else self.max_attempts
        delay = interval if interval is not None else self.interval

        for attempt in range(1, budget + 1):
            await self._sleep(delay)
            try:
                status = await asyncio.to_thread(self.processor.get_status, reference)
            except ProcessorError as e:
                payment_status_queries_total.labels(result="error").inc()
                logger.warning(
                    "payment_status_query_failed",
                    extra={"reference": reference, "attempt": attempt, "error": str(e)},
                )
                continue

            payment_status_queries_total.labels(result=status.status).inc()
            if status.status == "completed":
                return SettlementResult(SessionStatus.COMPLETED, status.message, attempt)
            if status.status == "failed":
                return SettlementResult(SessionStatus.FAILED, status.message, attempt)

        logger.warning(
            "payment_settlement_timed_out",
            extra={"reference": reference, "attempt": budget},
        )
        return SettlementResult(SessionStatus.TIMED_OUT, None, budget)
