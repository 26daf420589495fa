"""StripeEvent model"""
from sqlalchemy import Column, Integer, String, JSON, DateTime
from datetime import datetime, timezone
from trackstore.models.base import Base


class StripeEvent(Base):
    """Delivery log of verified Stripe webhook events (operator audit trail)"""
    __tablename__ = "stripe_events"

    id = Column(Integer, primary_key=True, index=True)
    stripe_event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    transaction_id = Column(String(255), nullable=True, index=True)
    outcome = Column(String(50), nullable=False)  # 'recorded', 'already_recorded', 'ignored', 'malformed_event'
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
