"""
Recompute and persist premium for every accepted pairing of one user.

Operator tool for fixing a stale premium flag without waiting for the user's
next receipt submission.
Run: python -m scripts.reconcile_user <user_id>
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import SessionLocal
from app.core.errors import NotFoundError
from app.services.entitlement_service import EntitlementService
from app.services.user_directory import get_user
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reconcile_user(user_id: int) -> bool:
    """Run one reconciliation pass for a user. Returns False if anything failed."""
    db = SessionLocal()
    try:
        try:
            get_user(db, user_id)
        except NotFoundError:
            logger.error(f"User {user_id} not found")
            return False

        service = EntitlementService(db)
        live_premium = service.compute_premium_status(user_id)
        persisted_premium = service.pairings.user_has_premium_pairing(user_id)
        logger.info(f"Before: user_id={user_id}, persisted_premium={persisted_premium}, live_premium={live_premium}")

        result = service.reconcile(user_id)
        logger.info(
            f"Reconciled user_id={user_id}: updated={result.updated_pairing_ids}, "
            f"premium={result.premium_pairing_ids}, failed={result.failed_pairing_ids}"
        )
        return result.complete
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2 or not sys.argv[1].isdigit():
        print("Usage: python -m scripts.reconcile_user <user_id>")
        sys.exit(2)

    success = reconcile_user(int(sys.argv[1]))

    if success:
        print(f"\n[SUCCESS] Premium reconciled for user {sys.argv[1]}")
    else:
        print(f"\n[ERROR] Reconciliation incomplete for user {sys.argv[1]}")
        sys.exit(1)
