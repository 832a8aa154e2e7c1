"""
Pydantic schemas for subscription endpoints.

Receipt submissions are accepted as raw JSON objects and checked by the
receipt validator, which reports the first failing field by name.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SubmittedSubscription(BaseModel):
    """Stored receipt summary returned after a submission."""
    id: str = Field(..., description="Subscription row id")
    platform: str = Field(..., description="ios or android")
    product_id: str = Field(..., description="Store product identifier")
    is_active: bool = Field(..., description="expiration_date is in the future")
    expiration_date: int = Field(..., description="Expiration timestamp in epoch milliseconds")


class PremiumStatus(BaseModel):
    """Outcome of the premium reconciliation run for this submission."""
    active: bool = Field(..., description="Whether the submitted receipt is active")
    pairings_updated: int = Field(..., description="Pairings that are premium after reconciliation")
    reconciliation_complete: bool = Field(
        True,
        description="False when some pairings could not be reconciled in this pass"
    )
    pairings_failed: List[str] = Field(
        default_factory=list,
        description="Pairing ids whose premium flag could not be written"
    )


class SubscriptionSubmissionResponse(BaseModel):
    """Response schema for POST /subscription."""
    message: str
    subscription: SubmittedSubscription
    premium_status: PremiumStatus

    class Config:
        json_schema_extra = {
            "example": {
                "message": "Subscription receipt created successfully",
                "subscription": {
                    "id": "4f1c2a9e8b7d4c3fa1e2d3c4b5a69788",
                    "platform": "ios",
                    "product_id": "premium_yearly",
                    "is_active": True,
                    "expiration_date": 1792310400000
                },
                "premium_status": {
                    "active": True,
                    "pairings_updated": 1,
                    "reconciliation_complete": True,
                    "pairings_failed": []
                }
            }
        }


class ActiveSubscription(BaseModel):
    id: str
    platform: str
    product_id: str
    expiration_date: int
    purchase_date: int


class SubscriptionStatusResponse(BaseModel):
    """Response schema for GET /subscription."""
    premium: bool = Field(..., description="Persisted premium flag of the user's pairings")
    active_subscriptions: int = Field(..., description="Active subscriptions across both platforms")
    latest_expiration: Optional[int] = Field(None, description="Latest active expiration (epoch ms)")
    subscriptions: List[ActiveSubscription] = Field(default_factory=list)


class ReceiptHistoryResponse(BaseModel):
    """Response schema for GET /subscription/receipts."""
    ios_receipts: List[Dict[str, Any]] = Field(default_factory=list)
    android_receipts: List[Dict[str, Any]] = Field(default_factory=list)
    total_receipts: int = 0


class SubscriptionErrorResponse(BaseModel):
    """Error body for validation, ownership and lookup failures."""
    error: str = Field(..., description="Error code")
    detail: str = Field(..., description="Human-readable error message")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "validation_error",
                "detail": "order_id is required for Android subscriptions"
            }
        }
