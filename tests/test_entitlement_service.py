"""
Unit tests for the entitlement service.
Tests receipt processing, premium reconciliation and status reads.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import OwnershipConflictError, ReceiptValidationError
from app.db.base import Base
from app.db import models  # noqa: F401  registers every model on Base.metadata
from app.db.models.user import User
from app.db.models.pairing import Pairing, PAIRING_ACCEPTED, PAIRING_PENDING
from app.db.models.android_subscription import AndroidSubscription
from app.services.entitlement_service import EntitlementService
from app.services.pairing_directory import PairingDirectory


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

NOW = 1760000000000
DAY_MS = 24 * 60 * 60 * 1000
YEAR_MS = 365 * DAY_MS


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


def make_user(db, name):
    user = User(full_name=name, email=f"{name.lower()}@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_pairing(db, user1, user2, status=PAIRING_ACCEPTED, premium=False):
    pairing = Pairing(
        user1_id=user1.id,
        user2_id=user2.id if user2 is not None else None,
        status=status,
        premium=premium,
    )
    db.add(pairing)
    db.commit()
    db.refresh(pairing)
    return pairing


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def alice(db):
    return make_user(db, "Alice")


@pytest.fixture
def bob(db):
    return make_user(db, "Bob")


@pytest.fixture
def carol(db):
    return make_user(db, "Carol")


@pytest.fixture
def service(db, clock):
    return EntitlementService(db, clock=clock)


def ios_payload(**overrides):
    payload = {
        "platform": "iOS",
        "product_id": "premium_yearly",
        "transaction_id": "tx-1",
        "original_transaction_id": "otx-1",
        "jws_receipt": "jws-blob",
        "environment": "production",
        "purchase_date": NOW - DAY_MS,
        "expiration_date": NOW + YEAR_MS,
    }
    payload.update(overrides)
    return payload


def android_payload(**overrides):
    payload = {
        "platform": "android",
        "product_id": "premium_monthly",
        "purchase_token": "token-1",
        "order_id": "GPA.1111",
        "package_name": "com.example.pairs",
        "purchase_date": NOW - DAY_MS,
        "expiration_date": NOW + 30 * DAY_MS,
    }
    payload.update(overrides)
    return payload


def premium_of(db, pairing_id):
    db.expire_all()
    return db.query(Pairing).filter(Pairing.id == pairing_id).one().premium


def test_unpaired_receipt_is_active_with_no_pairings_updated(service, alice):
    outcome = service.process_receipt(alice.id, ios_payload())

    assert outcome.platform == "ios"
    assert outcome.created is True
    assert outcome.is_active is True
    assert outcome.subscription.environment == "Production"
    assert outcome.reconciliation.premium_pairing_ids == []
    assert outcome.reconciliation.complete is True


def test_resubmission_is_idempotent(service, alice):
    first = service.process_receipt(alice.id, ios_payload())
    second = service.process_receipt(alice.id, ios_payload())

    assert first.created is True
    assert second.created is False
    assert second.subscription.id == first.subscription.id
    assert len(service.get_receipts(alice.id)["ios_receipts"]) == 1


def test_paired_receipt_makes_both_members_premium(db, service, alice, bob):
    pairing = make_pairing(db, alice, bob)

    outcome = service.process_receipt(alice.id, ios_payload())

    assert outcome.reconciliation.premium_pairing_ids == [pairing.id]
    assert premium_of(db, pairing.id) is True
    assert service.get_status(alice.id)["premium"] is True
    assert service.get_status(bob.id)["premium"] is True


def test_expired_resubmission_revokes_premium_for_both(db, service, alice, bob):
    pairing = make_pairing(db, alice, bob)
    service.process_receipt(alice.id, ios_payload())

    outcome = service.process_receipt(
        alice.id,
        ios_payload(purchase_date=NOW - 40 * DAY_MS, expiration_date=NOW - DAY_MS),
    )

    assert outcome.created is False
    assert outcome.is_active is False
    assert outcome.reconciliation.premium_pairing_ids == []
    assert outcome.reconciliation.updated_pairing_ids == [pairing.id]
    assert service.get_status(alice.id)["premium"] is False
    assert service.get_status(bob.id)["premium"] is False


def test_partner_subscription_keeps_pairing_premium(db, service, alice, bob):
    """An expired receipt from one member does not revoke the other member's entitlement."""
    pairing = make_pairing(db, alice, bob)
    service.process_receipt(bob.id, android_payload())

    service.process_receipt(
        alice.id,
        ios_payload(purchase_date=NOW - 40 * DAY_MS, expiration_date=NOW - DAY_MS),
    )

    assert premium_of(db, pairing.id) is True


def test_reconcile_only_touches_accepted_pairings(db, service, alice, bob, carol):
    accepted = make_pairing(db, alice, bob)
    pending = make_pairing(db, alice, None, status=PAIRING_PENDING)
    other = make_pairing(db, bob, carol)

    service.process_receipt(alice.id, ios_payload())

    assert premium_of(db, accepted.id) is True
    assert premium_of(db, pending.id) is False
    assert premium_of(db, other.id) is False


def test_reconcile_writes_every_pairing_and_matches_members(db, service, clock, alice, bob, carol):
    """After reconcile(u), each pairing's flag equals the OR of its members' active state."""
    with_bob = make_pairing(db, alice, bob, premium=True)
    with_carol = make_pairing(db, alice, carol, premium=False)
    service.process_receipt(carol.id, android_payload())

    clock.now = NOW + 2 * YEAR_MS  # carol's receipt has long expired
    service.process_receipt(
        bob.id,
        ios_payload(
            transaction_id="tx-bob",
            original_transaction_id="otx-bob",
            purchase_date=clock.now - DAY_MS,
            expiration_date=clock.now + DAY_MS,
        ),
    )
    result = service.reconcile(alice.id)

    assert sorted(result.updated_pairing_ids) == sorted([with_bob.id, with_carol.id])
    for pairing_id in (with_bob.id, with_carol.id):
        pairing = db.query(Pairing).filter(Pairing.id == pairing_id).one()
        expected = service.has_active_subscription(pairing.user1_id) or service.has_active_subscription(pairing.user2_id)
        assert premium_of(db, pairing_id) is expected
    assert premium_of(db, with_bob.id) is True
    assert premium_of(db, with_carol.id) is False


def test_status_is_a_snapshot_until_next_reconcile(db, service, clock, alice, bob):
    make_pairing(db, alice, bob)
    service.process_receipt(alice.id, ios_payload(expiration_date=NOW + DAY_MS))

    clock.now = NOW + 2 * DAY_MS
    status = service.get_status(bob.id)

    assert status["premium"] is True  # stored flag, not recomputed
    assert service.compute_premium_status(bob.id) is False

    service.reconcile(bob.id)
    assert service.get_status(bob.id)["premium"] is False


def test_reconcile_skips_failing_pairing(db, clock, alice, bob, carol):
    first = make_pairing(db, alice, bob)
    second = make_pairing(db, alice, carol)

    class FlakyDirectory(PairingDirectory):
        def set_premium_status(self, pairing_id, is_premium):
            if pairing_id == first.id:
                raise OperationalError("UPDATE pairings", {}, Exception("database is locked"))
            super().set_premium_status(pairing_id, is_premium)

    service = EntitlementService(db, pairings=FlakyDirectory(db), clock=clock)
    outcome = service.process_receipt(alice.id, ios_payload())

    assert outcome.created is True
    assert outcome.reconciliation.failed_pairing_ids == [first.id]
    assert outcome.reconciliation.premium_pairing_ids == [second.id]
    assert outcome.reconciliation.complete is False
    assert premium_of(db, second.id) is True
    assert premium_of(db, first.id) is False
    assert len(service.get_receipts(alice.id)["ios_receipts"]) == 1


def test_reconcile_reports_unreadable_pairings(db, clock, alice):
    class BrokenDirectory(PairingDirectory):
        def get_accepted_pairings(self, user_id):
            raise OperationalError("SELECT pairings", {}, Exception("connection reset"))

    service = EntitlementService(db, pairings=BrokenDirectory(db), clock=clock)
    result = service.reconcile(alice.id)

    assert result.pairings_loaded is False
    assert result.complete is False
    assert result.updated_pairing_ids == []


def test_android_order_id_reuse_is_rejected(db, service, alice, bob):
    service.process_receipt(alice.id, android_payload())

    with pytest.raises(OwnershipConflictError):
        service.process_receipt(bob.id, android_payload(purchase_token="token-bob", expiration_date=NOW + YEAR_MS))

    db.expire_all()
    row = db.query(AndroidSubscription).filter(AndroidSubscription.order_id == "GPA.1111").one()
    assert row.user_id == alice.id
    assert row.purchase_token == "token-1"
    assert row.expiration_date == NOW + 30 * DAY_MS


def test_ios_renewal_by_other_user_is_rejected(service, alice, bob):
    service.process_receipt(alice.id, ios_payload())

    with pytest.raises(OwnershipConflictError):
        service.process_receipt(bob.id, ios_payload(transaction_id="tx-renewal"))

    assert service.get_receipts(bob.id)["total_receipts"] == 0


def test_invalid_payload_stores_nothing(service, alice):
    payload = android_payload()
    del payload["order_id"]

    with pytest.raises(ReceiptValidationError, match="order_id"):
        service.process_receipt(alice.id, payload)

    assert service.get_receipts(alice.id)["total_receipts"] == 0


def test_get_status_counts_active_subscriptions_across_platforms(service, alice):
    service.process_receipt(alice.id, ios_payload())
    service.process_receipt(alice.id, android_payload())
    service.process_receipt(
        alice.id,
        android_payload(order_id="GPA.old", purchase_date=NOW - 60 * DAY_MS, expiration_date=NOW - 30 * DAY_MS),
    )

    status = service.get_status(alice.id)

    assert status["premium"] is False  # no pairing
    assert status["active_subscriptions"] == 2
    assert status["latest_expiration"] == NOW + YEAR_MS
    assert {sub["platform"] for sub in status["subscriptions"]} == {"ios", "android"}
    assert service.get_receipts(alice.id)["total_receipts"] == 3


def test_get_status_without_subscriptions(service, alice):
    status = service.get_status(alice.id)

    assert status == {
        "premium": False,
        "active_subscriptions": 0,
        "latest_expiration": None,
        "subscriptions": [],
    }
