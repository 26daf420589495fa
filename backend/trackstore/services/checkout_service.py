"""Checkout session issuer"""
import logging
from typing import Any, Dict
from sqlalchemy.orm import Session

from trackstore.core.config import settings
from trackstore.core.exceptions import (
    CheckoutSessionNotFound, PriceNotConfigured, ProviderUnavailable, TrackInactive, TrackNotFound
)
from trackstore.core.logging import payments_logger
from trackstore.core.metrics import checkout_sessions_counter
from trackstore.services import stripe_service
from trackstore.services.catalog_service import get_track
from trackstore.services.purchase_service import find_purchase_by_transaction

logger = logging.getLogger(__name__)


def create_track_checkout(buyer_id: str, track_id: str, frontend_url: str, db: Session) -> Dict[str, str]:
    """Start a hosted checkout for one track.

    Nothing is persisted here: the purchase exists only once the provider
    confirms payment through the webhook.

    Returns:
        {"session_id": ..., "redirect_url": ...}

    Raises:
        TrackNotFound, TrackInactive, PriceNotConfigured, ProviderUnavailable
    """
    try:
        track = get_track(track_id, db)
        if not track.is_active:
            raise TrackInactive()
        if not track.stripe_price_id:
            raise PriceNotConfigured()
    except (TrackNotFound, TrackInactive, PriceNotConfigured) as e:
        checkout_sessions_counter.labels(status=e.error).inc()
        logger.info(f"Checkout refused for buyer {buyer_id}, track {track_id}: {e.error}")
        raise

    base_url = frontend_url.rstrip("/")
    try:
        session = stripe_service.create_checkout_session(
            price_id=track.stripe_price_id,
            success_url=f"{base_url}{settings.CHECKOUT_SUCCESS_PATH}",
            cancel_url=f"{base_url}{settings.CHECKOUT_CANCEL_PATH}",
            metadata={"buyer_id": buyer_id, "track_id": track.id},
            client_reference_id=buyer_id
        )
    except (PriceNotConfigured, ProviderUnavailable) as e:
        checkout_sessions_counter.labels(status=e.error).inc()
        raise

    checkout_sessions_counter.labels(status="created").inc()
    # Checkout intent: enough to reconcile a payment whose webhook never arrives
    payments_logger.info(
        f"Checkout session {session['id']} created: buyer={buyer_id} track={track.id} "
        f"price={track.stripe_price_id} amount={track.price_cents}"
    )
    return {"session_id": session["id"], "redirect_url": session["url"]}


def get_checkout_status(buyer_id: str, session_id: str, db: Session) -> Dict[str, Any]:
    """Report a checkout session's payment state to the buyer who started it

    Raises:
        CheckoutSessionNotFound: Unknown session, or a session of another buyer
        ProviderUnavailable: Stripe could not be reached
    """
    session = stripe_service.retrieve_checkout_session(session_id)
    if session is None:
        raise CheckoutSessionNotFound()

    metadata = session.get("metadata") or {}
    owner = metadata.get("buyer_id") or session.get("client_reference_id")
    if owner != buyer_id:
        logger.warning(f"Buyer {buyer_id} asked for checkout session {session_id} owned by someone else")
        raise CheckoutSessionNotFound()

    return {
        "session_id": session_id,
        "track_id": metadata.get("track_id"),
        "payment_status": session.get("payment_status"),
        "purchase_recorded": find_purchase_by_transaction(session_id, db) is not None
    }
