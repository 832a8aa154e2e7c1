"""
Subscription receipt endpoints.

Receipt submission, premium status and receipt history for the authenticated
user.
"""
import logging
from typing import Any, Dict
from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_db, get_current_user_obj
from app.db.models.user import User
from app.schemas.subscription import (
    ReceiptHistoryResponse,
    SubscriptionErrorResponse,
    SubscriptionStatusResponse,
    SubscriptionSubmissionResponse,
)
from app.services.entitlement_service import EntitlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["Subscription"])

ERROR_RESPONSES = {
    400: {"model": SubscriptionErrorResponse},
    404: {"model": SubscriptionErrorResponse},
    409: {"model": SubscriptionErrorResponse},
}


@router.post(
    "",
    response_model=SubscriptionSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
def submit_receipt(
    response: Response,
    payload: Any = Body(...),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Submit an App Store or Google Play purchase receipt.

    Returns 201 when the receipt is stored for the first time and 200 when an
    existing receipt is refreshed. Premium is reconciled for every accepted
    pairing of the user before the response is returned.
    """
    outcome = EntitlementService(db).process_receipt(user.id, payload)
    reconciliation = outcome.reconciliation

    if not outcome.created:
        response.status_code = status.HTTP_200_OK

    if not reconciliation.complete:
        logger.warning(
            f"Receipt stored with incomplete reconciliation: user_id={user.id}, "
            f"failed_pairings={reconciliation.failed_pairing_ids}"
        )

    return {
        "message": (
            "Subscription receipt created successfully"
            if outcome.created
            else "Subscription receipt updated successfully"
        ),
        "subscription": {
            "id": outcome.subscription.id,
            "platform": outcome.platform,
            "product_id": outcome.subscription.product_id,
            "is_active": outcome.is_active,
            "expiration_date": outcome.subscription.expiration_date,
        },
        "premium_status": {
            "active": outcome.is_active,
            "pairings_updated": len(reconciliation.premium_pairing_ids),
            "reconciliation_complete": reconciliation.complete,
            "pairings_failed": reconciliation.failed_pairing_ids,
        },
    }


@router.get("", response_model=SubscriptionStatusResponse, responses=ERROR_RESPONSES)
def get_subscription_status(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Persisted premium flag and active subscriptions of the authenticated user."""
    return EntitlementService(db).get_status(user.id)


@router.get("/receipts", response_model=ReceiptHistoryResponse, responses=ERROR_RESPONSES)
def get_subscription_receipts(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """All stored receipts of the authenticated user, newest first per platform."""
    receipts = EntitlementService(db).get_receipts(user.id)
    logger.debug(f"Receipt history requested: user_id={user.id}, total={receipts['total_receipts']}")
    return receipts
