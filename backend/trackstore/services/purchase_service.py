"""Purchase recorder and purchase store

The purchase recorder is the only writer of the purchases table. Exactly-once
recording rests on the unique constraint on `provider_transaction_id`:
concurrent deliveries of one payment race to insert, one wins, and the others
observe the conflict and report the existing row.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trackstore.core.best_effort import run_best_effort
from trackstore.core.exceptions import MalformedEvent
from trackstore.core.logging import payments_logger
from trackstore.core.metrics import purchases_recorded_counter
from trackstore.models.purchase import Purchase, PurchaseStatus
from trackstore.schemas.events import PaymentCompleted
from trackstore.services.email_service import send_purchase_receipt

logger = logging.getLogger(__name__)


@dataclass
class RecordResult:
    purchase: Purchase
    inserted: bool

    @property
    def status(self) -> str:
        return "recorded" if self.inserted else "already_recorded"


# ============================================================================
# PURCHASE STORE
# ============================================================================

def find_purchase_by_transaction(transaction_id: str, db: Session) -> Optional[Purchase]:
    return db.query(Purchase).filter(Purchase.provider_transaction_id == transaction_id).first()


def find_purchase(buyer_id: str, track_id: str, db: Session, status: str = PurchaseStatus.PAID.value) -> Optional[Purchase]:
    """Point lookup on (buyer_id, track_id, status)"""
    return db.query(Purchase).filter(
        Purchase.buyer_id == buyer_id,
        Purchase.track_id == track_id,
        Purchase.status == status
    ).first()


def insert_purchase_if_absent(purchase: Purchase, db: Session) -> Tuple[Purchase, bool]:
    """Insert keyed by provider_transaction_id.

    Returns:
        (stored purchase, True) on first insert, (existing purchase, False) when a
        purchase for the same transaction already exists.

    Raises:
        SQLAlchemyError: Any storage failure other than the uniqueness conflict
    """
    existing = find_purchase_by_transaction(purchase.provider_transaction_id, db)
    if existing is not None:
        return existing, False

    db.add(purchase)
    try:
        db.commit()
    except IntegrityError:
        # Lost the race against a concurrent delivery of the same payment
        db.rollback()
        existing = find_purchase_by_transaction(purchase.provider_transaction_id, db)
        if existing is None:
            raise
        return existing, False

    db.refresh(purchase)
    return purchase, True


# ============================================================================
# PURCHASE RECORDER
# ============================================================================

def record_purchase(event: PaymentCompleted, db: Session) -> RecordResult:
    """Durably record a verified payment as a paid purchase.

    Safe under duplicate and concurrent delivery. Returns only after the row is
    committed (or found to exist already). Receipt e-mail is best-effort and
    runs after the commit.
    """
    required = {
        "transaction_id": event.transaction_id,
        "buyer_id": event.buyer_id,
        "track_id": event.track_id,
        "amount": event.amount,
        "currency": event.currency,
    }
    missing = [name for name, value in required.items() if value is None or value == ""]
    if missing:
        raise MalformedEvent(
            f"Payment event is missing {', '.join(missing)}",
            missing=missing,
            event_id=event.event_id,
            event_type=event.event_type
        )

    purchase = Purchase(
        buyer_id=event.buyer_id,
        track_id=event.track_id,
        provider_transaction_id=event.transaction_id,
        amount_cents=event.amount,
        currency=event.currency.lower(),
        status=PurchaseStatus.PAID.value,
        purchased_at=datetime.now(timezone.utc)
    )
    stored, inserted = insert_purchase_if_absent(purchase, db)

    if inserted:
        purchases_recorded_counter.labels(result="inserted").inc()
        payments_logger.info(
            f"Recorded purchase {stored.id}: buyer={stored.buyer_id} track={stored.track_id} "
            f"transaction={stored.provider_transaction_id} amount={stored.amount_cents} {stored.currency}"
        )
        if event.customer_email:
            run_best_effort("purchase receipt email", send_purchase_receipt, event.customer_email, stored, db)
    else:
        purchases_recorded_counter.labels(result="already_exists").inc()
        payments_logger.info(
            f"Purchase for transaction {event.transaction_id} already recorded (event {event.event_id})"
        )

    return RecordResult(purchase=stored, inserted=inserted)
