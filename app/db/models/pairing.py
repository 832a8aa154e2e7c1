import uuid
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func, expression
from app.db.base import Base


PAIRING_PENDING = "pending"
PAIRING_ACCEPTED = "accepted"
PAIRING_REJECTED = "rejected"


class Pairing(Base):
    """
    Link between two user accounts sharing one premium entitlement.

    The pairing lifecycle (request, accept, reject) lives outside this service;
    only `premium` is written here, by the entitlement reconciler.
    """
    __tablename__ = "pairings"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    user1_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user2_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    partner_code = Column(String(10), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=PAIRING_PENDING, index=True)  # pending | accepted | rejected
    premium = Column(Boolean, nullable=False, default=False, server_default=expression.false(), index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def members(self):
        """Member user ids, skipping the empty slot of a pending pairing."""
        return [user_id for user_id in (self.user1_id, self.user2_id) if user_id is not None]
