"""
Grant audit: record_grant is called only after a grant has been committed.
"""
from __future__ import annotations

import logging
from typing import Literal

logger = logging.getLogger(__name__)

GrantPurpose = Literal["subscription", "contact_unlock", "referral_access"]


def record_grant(
    client_id: str,
    purpose: GrantPurpose,
    reference: str,
    *,
    amount: int = 0,
    method: str | None = None,
    provider_id: str | None = None,
    settlement_latency_seconds: float | None = None,
) -> None:
    """Log a successful purchase effect for analytics."""
    logger.info(
        "paywall_grant",
        extra={
            "client_id": client_id,
            "purpose": purpose,
            "reference": reference,
            "amount": amount,
            "method": method,
            "provider_id": provider_id,
            "settlement_latency_seconds": settlement_latency_seconds,
        },
    )
