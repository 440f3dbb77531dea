from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, String, UniqueConstraint

from app.db.base import Base


class ProfileView(Base):
    """One free view of a provider by a client on a given UTC day. Immutable audit trail."""

    __tablename__ = "profile_views_tracking"
    __table_args__ = (
        UniqueConstraint("client_id", "provider_id", "view_date", name="uq_profile_view_daily"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    client_id = Column(String, nullable=False, index=True)
    provider_id = Column(String, nullable=False)
    view_date = Column(Date, nullable=False)
    viewed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
