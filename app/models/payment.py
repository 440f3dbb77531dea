"""
Payment model: local view of a processor transaction.
reference is issued by the processor (or generated for card) and is unique.
granted_at is set once the purchase effect has been applied.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.base import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    reference = Column(String, unique=True, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    purpose = Column(String, nullable=False)            # subscription / contact_unlock / referral_access
    payment_method = Column(String, nullable=False)     # mobile_money / card
    amount = Column(Integer, nullable=False)
    phone = Column(String, nullable=True)
    operator = Column(String, nullable=True)            # mtn / airtel / zamtel
    provider_id = Column(String, nullable=True)         # for contact_unlock
    status = Column(String, nullable=False, default="pending")  # pending / completed / failed / timed_out
    failure_reason = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = Column(DateTime(timezone=True), nullable=True)
    granted_at = Column(DateTime(timezone=True), nullable=True)
