"""Payment webhook verification and processing

Order of operations is fixed: verify the signature over the raw body, then
decode the body into a typed event, then record. Nothing downstream runs for a
delivery whose signature does not verify.
"""
import json
import logging
import stripe
from typing import Any, Dict, Optional
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trackstore.core.best_effort import run_best_effort
from trackstore.core.config import settings
from trackstore.core.exceptions import InvalidPayload, InvalidSignature, MalformedEvent, WebhookNotConfigured
from trackstore.core.logging import webhook_logger
from trackstore.core.metrics import webhook_events_counter
from trackstore.core.otel import annotate_payment_span
from trackstore.models.stripe_event import StripeEvent
from trackstore.schemas.events import (
    CheckoutSessionObject, IgnoredEvent, PaymentCompleted, PaymentEvent, StripeEventEnvelope
)
from trackstore.services.purchase_service import record_purchase

logger = logging.getLogger(__name__)

COMPLETION_EVENT_TYPES = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}

# Session payment states that mean the buyer owes nothing more
SETTLED_PAYMENT_STATUSES = {"paid", "no_payment_required"}


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# ============================================================================
# DECODING (only ever applied to verified bodies)
# ============================================================================

def decode_checkout_session(
    event_id: str,
    event_type: str,
    session_object: Dict[str, Any],
    created: Optional[int] = None
) -> PaymentEvent:
    """Map a checkout session to a typed payment event.

    Raises:
        MalformedEvent: The session is settled but lacks buyer, track,
            transaction id, amount or currency
    """
    try:
        session = CheckoutSessionObject.model_validate(session_object)
    except ValidationError as e:
        raise MalformedEvent(
            f"Checkout session object is invalid ({e.error_count()} errors)",
            event_id=event_id,
            event_type=event_type
        )

    if session.payment_status not in SETTLED_PAYMENT_STATUSES:
        # Delayed payment methods complete later via async_payment_succeeded
        return IgnoredEvent(
            event_id=event_id,
            event_type=event_type,
            reason=f"payment_status is {session.payment_status!r}"
        )

    metadata = session.metadata or {}
    fields = {
        "transaction_id": _clean(session.id),
        "buyer_id": _clean(metadata.get("buyer_id")) or _clean(session.client_reference_id),
        "track_id": _clean(metadata.get("track_id")),
        "amount": session.amount_total,
        "currency": _clean(session.currency),
    }
    missing = [name for name, value in fields.items() if value is None]
    if missing:
        raise MalformedEvent(
            f"Completed checkout session is missing {', '.join(missing)}",
            missing=missing,
            event_id=event_id,
            event_type=event_type
        )

    customer_email = session.customer_email
    if session.customer_details and session.customer_details.email:
        customer_email = session.customer_details.email

    return PaymentCompleted(
        event_id=event_id,
        event_type=event_type,
        transaction_id=fields["transaction_id"],
        buyer_id=fields["buyer_id"],
        track_id=fields["track_id"],
        amount=fields["amount"],
        currency=fields["currency"].lower(),
        customer_email=customer_email,
        created=created
    )


def decode_event(envelope: StripeEventEnvelope) -> PaymentEvent:
    """Map a verified Stripe event envelope to a typed payment event"""
    if envelope.type not in COMPLETION_EVENT_TYPES:
        return IgnoredEvent(event_id=envelope.id, event_type=envelope.type, reason="unhandled event type")
    return decode_checkout_session(envelope.id, envelope.type, envelope.data.object, envelope.created)


# ============================================================================
# VERIFICATION
# ============================================================================

def verify_webhook(payload: bytes, sig_header: Optional[str], secret: str, tolerance: int) -> PaymentEvent:
    """Verify a Stripe webhook delivery and decode it.

    Args:
        payload: Raw request body, exactly as received
        sig_header: Value of the Stripe-Signature header
        secret: Endpoint signing secret (whsec_...)
        tolerance: Maximum accepted age of the signed timestamp in seconds

    Returns:
        PaymentCompleted or IgnoredEvent

    Raises:
        WebhookNotConfigured: No signing secret configured
        InvalidSignature: Missing header or signature mismatch
        InvalidPayload: Verified body is not a Stripe event
        MalformedEvent: Verified completion event lacks required fields
    """
    if not secret:
        logger.error("Webhook secret not configured")
        raise WebhookNotConfigured()

    if not sig_header:
        webhook_logger.warning("Webhook rejected: missing Stripe-Signature header")
        raise InvalidSignature("Missing Stripe-Signature header")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        webhook_logger.warning("Webhook rejected: body is not valid UTF-8")
        raise InvalidSignature()

    try:
        stripe.WebhookSignature.verify_header(body, sig_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        webhook_logger.warning(f"Webhook signature verification failed: {e}")
        raise InvalidSignature()

    try:
        envelope = StripeEventEnvelope.model_validate_json(body)
    except ValidationError as e:
        webhook_logger.error(f"Verified webhook body is not a Stripe event: {e}")
        raise InvalidPayload()

    return decode_event(envelope)


# ============================================================================
# DELIVERY LOG
# ============================================================================

def log_stripe_event(
    event_id: str,
    event_type: str,
    outcome: str,
    payload: bytes,
    db: Session,
    transaction_id: Optional[str] = None
) -> StripeEvent:
    """Record a verified delivery; a redelivery keeps the first entry"""
    existing = db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first()
    if existing is not None:
        return existing

    stripe_event = StripeEvent(
        stripe_event_id=event_id,
        event_type=event_type,
        transaction_id=transaction_id,
        outcome=outcome,
        payload=json.loads(payload)
    )
    db.add(stripe_event)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).one()
    except SQLAlchemyError:
        db.rollback()
        raise
    return stripe_event


# ============================================================================
# PROCESSING
# ============================================================================

def process_payment_webhook(payload: bytes, sig_header: Optional[str], db: Session) -> Dict[str, Any]:
    """Verify, decode and record one webhook delivery.

    Returns a status dict for every delivery that should be acknowledged with
    2xx: 'recorded', 'already_recorded', 'ignored' or 'malformed_event'.
    Verification errors propagate; storage errors propagate so the provider
    redelivers.
    """
    try:
        event = verify_webhook(
            payload,
            sig_header,
            settings.STRIPE_WEBHOOK_SECRET,
            settings.STRIPE_WEBHOOK_TOLERANCE
        )
    except MalformedEvent as e:
        # Structural defect: retrying cannot fix it, so acknowledge once logged
        webhook_logger.error(f"Malformed payment event {e.event_id} ({e.event_type}): {e.message}")
        webhook_events_counter.labels(outcome="malformed_event").inc()
        annotate_payment_span("malformed_event", event_id=e.event_id)
        run_best_effort("webhook delivery log", log_stripe_event, e.event_id, e.event_type, "malformed_event", payload, db)
        return {"status": "malformed_event", "event_id": e.event_id}
    except (InvalidSignature, InvalidPayload, WebhookNotConfigured) as e:
        webhook_events_counter.labels(outcome=e.error).inc()
        annotate_payment_span(e.error)
        raise

    if isinstance(event, IgnoredEvent):
        webhook_logger.info(f"Ignoring webhook event {event.event_id} of type {event.event_type}: {event.reason}")
        webhook_events_counter.labels(outcome="ignored").inc()
        annotate_payment_span("ignored", event_id=event.event_id)
        run_best_effort("webhook delivery log", log_stripe_event, event.event_id, event.event_type, "ignored", payload, db)
        return {"status": "ignored", "event_id": event.event_id, "event_type": event.event_type}

    result = record_purchase(event, db)
    purchase_id = result.purchase.id
    webhook_events_counter.labels(outcome=result.status).inc()
    annotate_payment_span(result.status, event_id=event.event_id, transaction_id=event.transaction_id)
    run_best_effort(
        "webhook delivery log", log_stripe_event,
        event.event_id, event.event_type, result.status, payload, db,
        transaction_id=event.transaction_id
    )
    logger.info(f"Processed webhook event {event.event_id} for transaction {event.transaction_id}: {result.status}")
    return {"status": result.status, "event_id": event.event_id, "purchase_id": purchase_id}
