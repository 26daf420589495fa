"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from trackstore.models.base import Base
from trackstore.models.track import Track
from trackstore.models.purchase import Purchase, PurchaseStatus
from trackstore.models.stripe_event import StripeEvent

# Export all for convenience
__all__ = ["Base", "Track", "Purchase", "PurchaseStatus", "StripeEvent"]
