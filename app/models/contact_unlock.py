from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from app.db.base import Base


class ContactUnlock(Base):
    """Permanent contact reveal bought by a client for one provider. Survives subscription expiry."""

    __tablename__ = "contact_unlocks"
    __table_args__ = (UniqueConstraint("client_id", "provider_id", name="uq_contact_unlock_pair"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    client_id = Column(String, nullable=False, index=True)
    provider_id = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    payment_reference = Column(String, nullable=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
