"""
Per-platform subscription persistence.

IosSubscriptionStore and AndroidSubscriptionStore share one capability set
(validate, natural-key lookup, upsert, active queries). The receipt flow picks
one per request (EntitlementService.store_for) and never branches on platform
again.

Upserts rely on the UNIQUE constraint of the upsert key: when two deliveries
of the same receipt race, the losing INSERT raises IntegrityError and is
retried as an UPDATE of the winning row.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import OwnershipConflictError
from app.db.models.android_subscription import AndroidSubscription
from app.db.models.ios_subscription import IosSubscription
from app.services import receipt_validator
from app.services.receipt_validator import PLATFORM_ANDROID, PLATFORM_IOS

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class UpsertResult:
    subscription: Any
    created: bool


class SubscriptionStore:
    """
    Base class for a platform's receipt table.

    Subclasses set `model`, `platform`, `upsert_key` (the UNIQUE column),
    `natural_keys` (every column that identifies a purchase, checked for
    ownership) and `mutable_fields` (refreshed on resubmission).
    """
    model = None
    platform: str = ""
    upsert_key: str = ""
    natural_keys: Tuple[str, ...] = ()
    mutable_fields: Tuple[str, ...] = ()
    validator: Callable[[Dict[str, Any]], Dict[str, Any]] = None

    def __init__(self, db: Session, clock: Callable[[], int] = None):
        self.db = db
        self.clock = clock or now_ms

    def validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.validator(payload)

    def find_by_key(self, key: str, value: str) -> List[Any]:
        """All rows whose natural key `key` equals `value`."""
        column = getattr(self.model, key)
        return self.db.query(self.model).filter(column == value).all()

    def get_by_upsert_key(self, value: str):
        column = getattr(self.model, self.upsert_key)
        return self.db.query(self.model).filter(column == value).first()

    def upsert(self, user_id: int, validated: Dict[str, Any]) -> UpsertResult:
        """
        Insert the receipt, or refresh the existing row for its upsert key.

        Ownership must already have been checked by the caller; the race
        fallback re-checks it against the row that won the insert.
        """
        key_value = validated[self.upsert_key]
        existing = self.get_by_upsert_key(key_value)
        if existing is not None:
            return UpsertResult(self._update(existing, user_id, validated), created=False)

        row = self.model(user_id=user_id, **validated)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent delivery inserted the same key first
            self.db.rollback()
            logger.info(
                f"Duplicate {self.platform} receipt insert detected, switching to update: "
                f"user_id={user_id}, key={self.upsert_key}"
            )
            existing = self.get_by_upsert_key(key_value)
            if existing is None:
                raise
            return UpsertResult(self._update(existing, user_id, validated), created=False)

        self.db.refresh(row)
        logger.info(f"Created {self.platform} subscription: id={row.id}, user_id={user_id}")
        return UpsertResult(row, created=True)

    def _update(self, row, user_id: int, validated: Dict[str, Any]):
        if row.user_id != user_id:
            logger.warning(
                f"{self.platform} receipt owned by another user: "
                f"user_id={user_id}, key={self.upsert_key}"
            )
            raise OwnershipConflictError("Subscription receipt already belongs to another user")

        for field in self.mutable_fields:
            setattr(row, field, validated[field])
        self.db.commit()
        self.db.refresh(row)
        logger.info(f"Updated {self.platform} subscription: id={row.id}, user_id={user_id}")
        return row

    def has_active_subscription(self, user_id: int) -> bool:
        row = (
            self.db.query(self.model.id)
            .filter(self.model.user_id == user_id, self.model.expiration_date > self.clock())
            .first()
        )
        return row is not None

    def get_active_by_user_id(self, user_id: int) -> List[Any]:
        return (
            self.db.query(self.model)
            .filter(self.model.user_id == user_id, self.model.expiration_date > self.clock())
            .order_by(self.model.expiration_date.desc())
            .all()
        )

    def get_by_user_id(self, user_id: int) -> List[Any]:
        return (
            self.db.query(self.model)
            .filter(self.model.user_id == user_id)
            .order_by(self.model.created_at.desc())
            .all()
        )

    def is_active(self, row) -> bool:
        return row.expiration_date > self.clock()

    def to_dict(self, row) -> Dict[str, Any]:
        """Serialize a row for receipt-history responses."""
        data = {
            "id": row.id,
            "user_id": row.user_id,
            "product_id": row.product_id,
            "purchase_date": row.purchase_date,
            "expiration_date": row.expiration_date,
            "is_active": self.is_active(row),
            "created_at": row.created_at.isoformat() if row.created_at else None,
            "updated_at": row.updated_at.isoformat() if row.updated_at else None,
        }
        for field in self.mutable_fields:
            data.setdefault(field, getattr(row, field))
        data[self.upsert_key] = getattr(row, self.upsert_key)
        return data


class IosSubscriptionStore(SubscriptionStore):
    model = IosSubscription
    platform = PLATFORM_IOS
    upsert_key = "transaction_id"
    natural_keys = ("transaction_id", "original_transaction_id")
    mutable_fields = (
        "product_id",
        "original_transaction_id",
        "jws_receipt",
        "environment",
        "purchase_date",
        "expiration_date",
    )
    validator = staticmethod(receipt_validator.validate_ios_payload)

    def get_by_transaction_id(self, transaction_id: str) -> Optional[IosSubscription]:
        return self.get_by_upsert_key(transaction_id)

    def get_by_original_transaction_id(self, original_transaction_id: str) -> List[IosSubscription]:
        """Every transaction of one subscription lineage, renewals included."""
        return self.find_by_key("original_transaction_id", original_transaction_id)


class AndroidSubscriptionStore(SubscriptionStore):
    model = AndroidSubscription
    platform = PLATFORM_ANDROID
    upsert_key = "order_id"
    natural_keys = ("order_id", "purchase_token")
    mutable_fields = (
        "product_id",
        "purchase_token",
        "package_name",
        "purchase_date",
        "expiration_date",
    )
    validator = staticmethod(receipt_validator.validate_android_payload)

    def get_by_order_id(self, order_id: str) -> Optional[AndroidSubscription]:
        return self.get_by_upsert_key(order_id)

    def get_by_purchase_token(self, purchase_token: str) -> List[AndroidSubscription]:
        return self.find_by_key("purchase_token", purchase_token)

