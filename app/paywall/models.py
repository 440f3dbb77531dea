"""
DTO paywall: AccessDecision (resolver output), CacheEntry, ViewResult, ProfileAccess.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ----- Access decision (recomputed from subscription + today's views, never persisted) -----


class AccessDecision(BaseModel):
    """Whether the client may open more provider profiles today."""

    has_active_subscription: bool = False
    daily_views_count: int = Field(0, ge=0, description="Distinct providers viewed today")
    daily_views_limit: int = Field(..., ge=1)
    can_view_more: bool = Field(
        ...,
        description="True when subscribed or still under the daily free quota",
    )
    subscription_ends_at: datetime | None = None

    model_config = {"frozen": True}

    def with_new_view(self) -> "AccessDecision":
        """Optimistic copy after a new free view has been recorded."""
        count = self.daily_views_count + 1
        return self.model_copy(
            update={
                "daily_views_count": count,
                "can_view_more": self.has_active_subscription or count < self.daily_views_limit,
            }
        )


class CacheEntry(BaseModel):
    data: AccessDecision
    timestamp: float
    owner_id: str

    model_config = {"frozen": True}


class ViewResult(BaseModel):
    """record_view outcome: False when the (client, provider, day) row already existed."""

    is_new_view: bool

    model_config = {"frozen": True}


# ----- Gate result for opening a profile -----

ProfileAccessReason = Literal[
    "anonymous",
    "subscribed",
    "within_quota",
    "already_viewed",
    "quota_exhausted",
]


class ProfileAccess(BaseModel):
    allowed: bool
    reason: ProfileAccessReason
    decision: AccessDecision

    model_config = {"frozen": True}
