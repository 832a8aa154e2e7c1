"""
Cross-account receipt reuse protection.

A purchase's natural identifiers may only ever be attached to the account
that first submitted them.
"""
import logging
from typing import Any, Dict

from app.core.errors import OwnershipConflictError
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


def ensure_subscription_ownership(store: SubscriptionStore, validated: Dict[str, Any], user_id: int) -> None:
    """
    Reject the submission if any natural key in it belongs to another user.

    Every key is checked (iOS: transaction_id and original_transaction_id;
    Android: order_id and purchase_token). One colliding key fails the whole
    submission.

    Raises:
        OwnershipConflictError: a stored row for one of the keys has a different owner
    """
    for key in store.natural_keys:
        for row in store.find_by_key(key, validated[key]):
            if row.user_id != user_id:
                logger.warning(
                    f"Ownership conflict: platform={store.platform}, key={key}, "
                    f"requesting_user_id={user_id}"
                )
                raise OwnershipConflictError("Subscription receipt already belongs to another user")
