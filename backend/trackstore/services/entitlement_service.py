"""Entitlement checks - a paid purchase is the only evidence of ownership"""
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from trackstore.models.purchase import Purchase, PurchaseStatus
from trackstore.models.track import Track
from trackstore.services.purchase_service import find_purchase


def find_entitlement(buyer_id: str, track_id: str, db: Session) -> Optional[Purchase]:
    """Return the buyer's paid purchase of the track, if any"""
    if not buyer_id or not track_id:
        return None
    return find_purchase(buyer_id, track_id, db, status=PurchaseStatus.PAID.value)


def is_entitled(buyer_id: str, track_id: str, db: Session) -> bool:
    return find_entitlement(buyer_id, track_id, db) is not None


def list_library(buyer_id: str, db: Session) -> List[Dict]:
    """Paid purchases of the buyer with track details, newest first"""
    rows = (
        db.query(Purchase, Track)
        .outerjoin(Track, Track.id == Purchase.track_id)
        .filter(Purchase.buyer_id == buyer_id, Purchase.status == PurchaseStatus.PAID.value)
        .order_by(Purchase.purchased_at.desc(), Purchase.id.desc())
        .all()
    )
    return [
        {
            "purchase_id": purchase.id,
            "track_id": purchase.track_id,
            "title": track.title if track else None,
            "artist": track.artist if track else None,
            "cover_url": track.cover_url if track else None,
            "amount_cents": purchase.amount_cents,
            "currency": purchase.currency,
            "purchased_at": purchase.purchased_at,
        }
        for purchase, track in rows
    ]
