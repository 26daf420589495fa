"""Stripe payment provider adapter"""
import logging
import stripe
from typing import Any, Dict, Iterator, Optional
from datetime import datetime

from trackstore.core.config import settings
from trackstore.core.exceptions import PriceNotConfigured, ProviderUnavailable

logger = logging.getLogger(__name__)

# Configure Stripe. Calls are bounded and never retried automatically:
# a failed checkout is retried by the buyer starting checkout again.
stripe.api_key = settings.STRIPE_SECRET_KEY
stripe.max_network_retries = 0
stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_API_TIMEOUT)


def to_plain_dict(obj: Any) -> Dict[str, Any]:
    """Convert a Stripe object to a plain dict.

    Older stripe releases make StripeObject a dict subclass; newer ones do not
    and only offer to_dict().
    """
    if obj is None:
        return {}
    values = obj if isinstance(obj, dict) else obj.to_dict()
    return {
        key: to_plain_dict(value) if isinstance(value, dict) or hasattr(value, "to_dict") else value
        for key, value in values.items()
    }


# ============================================================================
# CHECKOUT SESSIONS
# ============================================================================

def create_checkout_session(
    price_id: str,
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    client_reference_id: Optional[str] = None
) -> Dict[str, str]:
    """Create a hosted one-off payment checkout for a single price.

    Args:
        price_id: Stripe Price ID of the track
        success_url: Redirect after payment; may contain {CHECKOUT_SESSION_ID}
        cancel_url: Redirect when the buyer abandons checkout
        metadata: Correlation data echoed back in the completion webhook
        client_reference_id: Buyer id, echoed back as a fallback correlation key

    Returns:
        Dict with the session 'id' and the hosted checkout 'url'

    Raises:
        PriceNotConfigured: Stripe rejected the price reference
        ProviderUnavailable: Network error, timeout, rate limit or Stripe-side failure
    """
    checkout_params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
    }
    if client_reference_id:
        checkout_params["client_reference_id"] = client_reference_id

    try:
        session = stripe.checkout.Session.create(**checkout_params)
    except stripe.InvalidRequestError as e:
        if (getattr(e, "param", None) or "").startswith("line_items"):
            logger.error(f"Stripe rejected price {price_id}: {e}")
            raise PriceNotConfigured()
        logger.error(f"Stripe rejected checkout request: {e}")
        raise ProviderUnavailable()
    except stripe.StripeError as e:
        logger.error(f"Stripe unavailable while creating checkout session: {e}")
        raise ProviderUnavailable()

    return {"id": session["id"], "url": session["url"]}


def retrieve_checkout_session(session_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a checkout session as a plain dict, or None when Stripe does not know it"""
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError:
        return None
    except stripe.StripeError as e:
        logger.error(f"Stripe unavailable while retrieving checkout session {session_id}: {e}")
        raise ProviderUnavailable()
    return to_plain_dict(session)


def list_completed_checkout_sessions(since: datetime) -> Iterator[Dict[str, Any]]:
    """Iterate completed checkout sessions created at or after `since`, as plain dicts"""
    try:
        sessions = stripe.checkout.Session.list(
            created={"gte": int(since.timestamp())},
            status="complete",
            limit=100
        )
        for session in sessions.auto_paging_iter():
            yield to_plain_dict(session)
    except stripe.StripeError as e:
        logger.error(f"Stripe unavailable while listing checkout sessions: {e}")
        raise ProviderUnavailable()
