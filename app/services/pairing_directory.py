"""
Pairing directory: the pairing records and their persisted premium flag.
"""
import logging
from typing import List

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.db.models.pairing import Pairing, PAIRING_ACCEPTED

logger = logging.getLogger(__name__)


class PairingDirectory:
    def __init__(self, db: Session):
        self.db = db

    def _live_pairings_for(self, user_id: int):
        return self.db.query(Pairing).filter(
            or_(Pairing.user1_id == user_id, Pairing.user2_id == user_id),
            Pairing.status == PAIRING_ACCEPTED,
            Pairing.deleted_at.is_(None),
        )

    def get_accepted_pairings(self, user_id: int) -> List[Pairing]:
        """Accepted, non-deleted pairings containing the user, newest first."""
        return self._live_pairings_for(user_id).order_by(Pairing.created_at.desc()).all()

    def set_premium_status(self, pairing_id: str, is_premium: bool) -> None:
        """
        Persist the premium flag for one pairing and commit.

        Always issues the UPDATE, even when the value is unchanged.

        Raises:
            NotFoundError: no live pairing with this id
        """
        updated = (
            self.db.query(Pairing)
            .filter(Pairing.id == pairing_id, Pairing.deleted_at.is_(None))
            .update(
                {Pairing.premium: bool(is_premium), Pairing.updated_at: func.now()},
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            raise NotFoundError("Pairing not found")

        self.db.commit()
        logger.debug(f"Premium status written: pairing_id={pairing_id}, premium={bool(is_premium)}")

    def get_premium_status(self, pairing_id: str) -> bool:
        pairing = (
            self.db.query(Pairing.premium)
            .filter(Pairing.id == pairing_id, Pairing.deleted_at.is_(None))
            .first()
        )
        if pairing is None:
            raise NotFoundError("Pairing not found")
        return bool(pairing.premium)

    def user_has_premium_pairing(self, user_id: int) -> bool:
        row = self._live_pairings_for(user_id).filter(Pairing.premium.is_(True)).first()
        return row is not None
