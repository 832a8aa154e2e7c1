"""
Entitlement reconciliation for paired accounts.

A pairing is premium when either member holds an active subscription on any
platform. The flag is a snapshot: it is recomputed and persisted for every
accepted pairing of a user whenever that user submits a receipt, and read back
as stored by the status endpoint.

Reconciliation runs inside the receipt request and finishes before the
response is built; the submission response reports what it wrote.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import SubscriptionError
from app.core.logging_config import sanitize_log_data
from app.db.models.pairing import Pairing
from app.services.ownership_guard import ensure_subscription_ownership
from app.services.pairing_directory import PairingDirectory
from app.services.receipt_validator import ensure_payload_object, normalize_platform
from app.services.subscription_store import (
    AndroidSubscriptionStore,
    IosSubscriptionStore,
    SubscriptionStore,
    now_ms,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    premium_pairing_ids: List[str] = field(default_factory=list)
    updated_pairing_ids: List[str] = field(default_factory=list)
    failed_pairing_ids: List[str] = field(default_factory=list)
    # False when the pairing list itself could not be read
    pairings_loaded: bool = True

    @property
    def complete(self) -> bool:
        return self.pairings_loaded and not self.failed_pairing_ids


@dataclass
class ReceiptOutcome:
    platform: str
    subscription: Any
    created: bool
    is_active: bool
    reconciliation: ReconciliationResult


class EntitlementService:
    """Receipt intake and premium reconciliation for one database session."""

    def __init__(
        self,
        db: Session,
        pairings: Optional[PairingDirectory] = None,
        clock: Callable[[], int] = None,
    ):
        self.db = db
        self.clock = clock or now_ms
        self.pairings = pairings or PairingDirectory(db)
        self.ios_store = IosSubscriptionStore(db, clock=self.clock)
        self.android_store = AndroidSubscriptionStore(db, clock=self.clock)

    @property
    def stores(self) -> List[SubscriptionStore]:
        return [self.ios_store, self.android_store]

    def store_for(self, platform: str) -> SubscriptionStore:
        """Select the store for an already-normalized platform name."""
        return {store.platform: store for store in self.stores}[platform]

    def has_active_subscription(self, user_id: int) -> bool:
        return any(store.has_active_subscription(user_id) for store in self.stores)

    def compute_pairing_premium(self, pairing: Pairing) -> bool:
        """Premium iff either member has an active subscription right now."""
        return any(self.has_active_subscription(user_id) for user_id in pairing.members())

    def compute_premium_status(self, user_id: int) -> bool:
        """
        Live premium view for one user: own subscription or an accepted partner's.

        Not persisted and not used by get_status(); operators use it to spot
        pairings whose stored flag has gone stale.
        """
        if self.has_active_subscription(user_id):
            return True

        for pairing in self.pairings.get_accepted_pairings(user_id):
            partner_id = pairing.user2_id if pairing.user1_id == user_id else pairing.user1_id
            if partner_id is not None and self.has_active_subscription(partner_id):
                return True
        return False

    def reconcile(self, user_id: int) -> ReconciliationResult:
        """
        Recompute and persist premium for every accepted pairing of a user.

        Each pairing is written unconditionally and committed on its own. A
        failing pairing is logged and skipped; the rest are still written.
        """
        result = ReconciliationResult()

        try:
            pairings = self.pairings.get_accepted_pairings(user_id)
        except SQLAlchemyError:
            logger.exception(f"Could not load accepted pairings for premium reconciliation: user_id={user_id}")
            self.db.rollback()
            result.pairings_loaded = False
            return result

        for pairing in pairings:
            pairing_id = pairing.id
            try:
                should_be_premium = self.compute_pairing_premium(pairing)
                self.pairings.set_premium_status(pairing_id, should_be_premium)
            except (SQLAlchemyError, SubscriptionError):
                logger.exception(f"Premium reconciliation failed: pairing_id={pairing_id}, user_id={user_id}")
                self.db.rollback()
                result.failed_pairing_ids.append(pairing_id)
                continue

            result.updated_pairing_ids.append(pairing_id)
            if should_be_premium:
                result.premium_pairing_ids.append(pairing_id)

        logger.info(
            f"Premium reconciled: user_id={user_id}, pairings={len(pairings)}, "
            f"premium={len(result.premium_pairing_ids)}, failed={len(result.failed_pairing_ids)}"
        )
        return result

    def process_receipt(self, user_id: int, payload: Dict[str, Any]) -> ReceiptOutcome:
        """
        Validate, store and reconcile one receipt submission.

        Raises:
            ReceiptValidationError: malformed payload
            OwnershipConflictError: a natural key belongs to another user
        """
        payload = ensure_payload_object(payload)
        platform = normalize_platform(payload.get("platform"))
        store = self.store_for(platform)

        validated = store.validate(payload)
        logger.debug(f"Receipt validated: user_id={user_id}, payload={sanitize_log_data(validated)}")

        ensure_subscription_ownership(store, validated, user_id)
        upserted = store.upsert(user_id, validated)

        subscription = upserted.subscription
        is_active = store.is_active(subscription)
        reconciliation = self.reconcile(user_id)

        logger.info(
            f"Receipt processed: user_id={user_id}, platform={platform}, "
            f"subscription_id={subscription.id}, created={upserted.created}, active={is_active}"
        )

        return ReceiptOutcome(
            platform=platform,
            subscription=subscription,
            created=upserted.created,
            is_active=is_active,
            reconciliation=reconciliation,
        )

    def get_status(self, user_id: int) -> Dict[str, Any]:
        """Persisted premium flag plus the user's active subscriptions. Read only."""
        has_premium_pairing = self.pairings.user_has_premium_pairing(user_id)

        subscriptions = []
        for store in self.stores:
            for row in store.get_active_by_user_id(user_id):
                subscriptions.append({
                    "id": row.id,
                    "platform": store.platform,
                    "product_id": row.product_id,
                    "expiration_date": row.expiration_date,
                    "purchase_date": row.purchase_date,
                })

        latest_expiration = None
        if subscriptions:
            latest_expiration = max(sub["expiration_date"] for sub in subscriptions)

        return {
            "premium": has_premium_pairing,
            "active_subscriptions": len(subscriptions),
            "latest_expiration": latest_expiration,
            "subscriptions": subscriptions,
        }

    def get_receipts(self, user_id: int) -> Dict[str, Any]:
        ios_receipts = [self.ios_store.to_dict(row) for row in self.ios_store.get_by_user_id(user_id)]
        android_receipts = [self.android_store.to_dict(row) for row in self.android_store.get_by_user_id(user_id)]

        return {
            "ios_receipts": ios_receipts,
            "android_receipts": android_receipts,
            "total_receipts": len(ios_receipts) + len(android_receipts),
        }
