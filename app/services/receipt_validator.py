"""
Receipt payload validation for iOS and Android purchase submissions.

Each validator checks its rules in a fixed order and raises
ReceiptValidationError on the first violation; nothing is accumulated.
"""
import math
from typing import Any, Dict, Union

from app.core.errors import ReceiptValidationError

PLATFORM_IOS = "ios"
PLATFORM_ANDROID = "android"
SUPPORTED_PLATFORMS = (PLATFORM_IOS, PLATFORM_ANDROID)

# Largest value a BigInteger column holds
MAX_TIMESTAMP_MS = 2 ** 63 - 1

IOS_ENVIRONMENTS = {
    "production": "Production",
    "sandbox": "Sandbox",
}

IOS_REQUIRED_FIELDS = ("product_id", "transaction_id", "original_transaction_id", "jws_receipt")
ANDROID_REQUIRED_FIELDS = ("product_id", "purchase_token", "order_id", "package_name")


def normalize_platform(platform: Any) -> str:
    """Return "ios" or "android" for any casing/whitespace variant."""
    if not platform or not isinstance(platform, str):
        raise ReceiptValidationError("Platform is required")

    normalized = platform.strip().lower()
    if normalized not in SUPPORTED_PLATFORMS:
        raise ReceiptValidationError('Invalid platform. Must be "ios" or "android"')

    return normalized


def normalize_environment(environment: Any) -> str:
    if not environment or not isinstance(environment, str):
        raise ReceiptValidationError("environment is required for iOS subscriptions")

    normalized = IOS_ENVIRONMENTS.get(environment.strip().lower())
    if normalized is None:
        raise ReceiptValidationError("environment must be Production or Sandbox")

    return normalized


def validate_timestamp(name: str, value: Any) -> Union[int, float]:
    """
    Validate an epoch-millisecond timestamp.

    Booleans and numeric strings are rejected: clients must send JSON numbers.
    Values must fit a signed 64-bit column.

    Returns:
        The timestamp unchanged
    """
    if value is None:
        raise ReceiptValidationError(f"{name} is required")

    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value <= 0
        or value > MAX_TIMESTAMP_MS
    ):
        raise ReceiptValidationError(
            f"{name} must be a positive number (timestamp in milliseconds)"
        )

    return value


def _require_fields(payload: Dict[str, Any], fields, platform_label: str) -> Dict[str, str]:
    values = {}
    for field in fields:
        value = payload.get(field)
        if not value or not isinstance(value, str) or not value.strip():
            raise ReceiptValidationError(f"{field} is required for {platform_label} subscriptions")
        values[field] = value.strip()
    return values


def _validate_dates(payload: Dict[str, Any]) -> Dict[str, int]:
    purchase_date = validate_timestamp("purchase_date", payload.get("purchase_date"))
    expiration_date = validate_timestamp("expiration_date", payload.get("expiration_date"))

    if expiration_date <= purchase_date:
        raise ReceiptValidationError("expiration_date must be later than purchase_date")

    # Whole milliseconds: floor/ceil keeps the stored pair strictly ordered
    return {
        "purchase_date": math.floor(purchase_date),
        "expiration_date": math.ceil(expiration_date),
    }


def ensure_payload_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ReceiptValidationError("Request body must be a JSON object")
    return payload


def validate_ios_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate an App Store receipt submission.

    Args:
        payload: Raw request body

    Returns:
        Normalized fields: product_id, transaction_id, original_transaction_id,
        jws_receipt, environment, purchase_date, expiration_date
    """
    payload = ensure_payload_object(payload)
    validated = _require_fields(payload, IOS_REQUIRED_FIELDS, "iOS")
    validated["environment"] = normalize_environment(payload.get("environment"))
    validated.update(_validate_dates(payload))
    return validated


def validate_android_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a Google Play receipt submission.

    Returns:
        Normalized fields: product_id, purchase_token, order_id, package_name,
        purchase_date, expiration_date
    """
    payload = ensure_payload_object(payload)
    validated = _require_fields(payload, ANDROID_REQUIRED_FIELDS, "Android")
    validated.update(_validate_dates(payload))
    return validated
