"""Purchase model"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Index
from datetime import datetime, timezone
from trackstore.models.base import Base


class PurchaseStatus(str, enum.Enum):
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class Purchase(Base):
    """A buyer's payment for a track. A paid row is the entitlement."""
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(String(255), nullable=False)
    track_id = Column(String(64), nullable=False)
    # Stripe checkout session id; at most one purchase per transaction
    provider_transaction_id = Column(String(255), unique=True, nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default=PurchaseStatus.PAID.value)  # paid | refunded | failed
    purchased_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_purchases_buyer_track_status', 'buyer_id', 'track_id', 'status'),
    )
