"""Manual reconciliation of completed checkouts against recorded purchases

Feeds completed checkout sessions from Stripe through the same decoding and
recording path as the webhook. Recording is idempotent, so a session whose
webhook was already processed is reported as already recorded.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict
from sqlalchemy.orm import Session

from trackstore.core.exceptions import MalformedEvent
from trackstore.schemas.events import IgnoredEvent
from trackstore.services.purchase_service import record_purchase
from trackstore.services.stripe_service import list_completed_checkout_sessions
from trackstore.services.webhook_service import decode_checkout_session

logger = logging.getLogger(__name__)


def reconcile_recent_purchases(hours: int, db: Session) -> Dict[str, int]:
    """Record purchases for completed sessions created in the last `hours` hours

    Returns:
        Counts keyed by 'scanned', 'recorded', 'already_recorded', 'ignored', 'malformed'
    """
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    counts = {"scanned": 0, "recorded": 0, "already_recorded": 0, "ignored": 0, "malformed": 0}

    for session in list_completed_checkout_sessions(since):
        counts["scanned"] += 1
        session_id = session["id"]
        try:
            event = decode_checkout_session(
                f"reconcile:{session_id}",
                "checkout.session.completed",
                session,
                session.get("created")
            )
        except MalformedEvent as e:
            counts["malformed"] += 1
            logger.warning(f"Skipping checkout session {session_id}: {e.message}")
            continue

        if isinstance(event, IgnoredEvent):
            counts["ignored"] += 1
            continue

        result = record_purchase(event, db)
        counts[result.status] += 1
        if result.inserted:
            logger.info(f"Reconciled missing purchase for checkout session {session_id}")

    logger.info(f"Reconciliation over last {hours}h finished: {counts}")
    return counts
