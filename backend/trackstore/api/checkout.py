"""Checkout API routes"""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trackstore.core.config import settings
from trackstore.core.security import require_auth
from trackstore.db.session import get_db
from trackstore.schemas.checkout import CheckoutRequest, CheckoutResponse, CheckoutStatusResponse
from trackstore.services.checkout_service import create_track_checkout, get_checkout_status

router = APIRouter(prefix="/api/checkout", tags=["checkout"])
logger = logging.getLogger(__name__)


@router.post("", response_model=CheckoutResponse)
def create_checkout(
    request_data: CheckoutRequest,
    buyer_id: str = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Create a Stripe checkout session for a single track"""
    return create_track_checkout(buyer_id, request_data.track_id, settings.FRONTEND_URL, db)


@router.get("/status", response_model=CheckoutStatusResponse)
def checkout_status(
    session_id: str = Query(..., min_length=1),
    buyer_id: str = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Check a checkout session after the redirect back from Stripe.

    purchase_recorded stays False until the payment webhook has been processed.
    """
    return get_checkout_status(buyer_id, session_id, db)
