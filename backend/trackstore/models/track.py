"""Track model"""
from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime
from datetime import datetime, timezone
from trackstore.models.base import Base


class Track(Base):
    """Catalog entry for a purchasable track (maintained by catalog administration)"""
    __tablename__ = "tracks"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    artist = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    stripe_price_id = Column(String(255), nullable=True)  # Price reference understood by Stripe
    is_active = Column(Boolean, default=True, nullable=False)
    audio_object_key = Column(String(1024), nullable=True)  # Object key or full storage URL
    cover_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
