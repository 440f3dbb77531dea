from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String

from app.db.base import Base


class ReferralAccess(Base):
    """Lifetime access to the referral programme, bought with a one-off fee."""

    __tablename__ = "referral_access"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, unique=True, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    payment_method = Column(String, nullable=False)
    payment_reference = Column(String, nullable=True)
    granted_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
