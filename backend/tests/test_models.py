"""Database model tests"""
import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from trackstore.models.purchase import Purchase, PurchaseStatus
from trackstore.models.stripe_event import StripeEvent
from trackstore.models.track import Track
from trackstore.services.purchase_service import insert_purchase_if_absent


@pytest.mark.critical
class TestPurchaseModel:
    """Purchase table constraints"""

    def test_transaction_id_is_unique(self, db_session):
        """The database itself refuses a second row for one transaction"""
        db_session.add(Purchase(buyer_id="U1", track_id="T001", provider_transaction_id="tx_1", amount_cents=99, currency="usd"))
        db_session.commit()

        db_session.add(Purchase(buyer_id="U2", track_id="T002", provider_transaction_id="tx_1", amount_cents=5, currency="usd"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(Purchase).count() == 1

    def test_defaults(self, db_session):
        purchase = Purchase(buyer_id="U1", track_id="T001", provider_transaction_id="tx_1", amount_cents=99, currency="usd")
        db_session.add(purchase)
        db_session.commit()
        db_session.refresh(purchase)
        assert purchase.status == PurchaseStatus.PAID.value
        assert purchase.purchased_at is not None

    def test_entitlement_index_exists(self, db_session):
        indexes = {idx["name"]: idx["column_names"] for idx in inspect(db_session.bind).get_indexes("purchases")}
        assert indexes["ix_purchases_buyer_track_status"] == ["buyer_id", "track_id", "status"]

    def test_insert_if_absent_returns_existing(self, db_session):
        first, inserted = insert_purchase_if_absent(
            Purchase(buyer_id="U1", track_id="T001", provider_transaction_id="tx_1", amount_cents=99, currency="usd"),
            db_session
        )
        assert inserted is True

        again, inserted = insert_purchase_if_absent(
            Purchase(buyer_id="U1", track_id="T001", provider_transaction_id="tx_1", amount_cents=99, currency="usd"),
            db_session
        )
        assert inserted is False
        assert again.id == first.id


@pytest.mark.medium
class TestOtherModels:
    """Track and delivery log"""

    def test_track_defaults(self, db_session):
        track = Track(id="T009", title="T", artist="A")
        db_session.add(track)
        db_session.commit()
        db_session.refresh(track)
        assert track.is_active is True
        assert track.price_cents == 0
        assert track.stripe_price_id is None

    def test_stripe_event_id_unique(self, db_session):
        db_session.add(StripeEvent(stripe_event_id="evt_1", event_type="x", outcome="ignored", payload={}))
        db_session.commit()
        db_session.add(StripeEvent(stripe_event_id="evt_1", event_type="x", outcome="ignored", payload={}))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
