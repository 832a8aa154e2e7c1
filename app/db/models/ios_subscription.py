import uuid
from sqlalchemy import Column, Integer, String, Text, BigInteger, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.db.base import Base


class IosSubscription(Base):
    """
    App Store purchase receipt.

    `transaction_id` names one purchase event and is unique. Renewals carry a
    new `transaction_id` with the same `original_transaction_id`, so the
    lineage key is indexed but not unique.
    """
    __tablename__ = "ios_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(255), nullable=False)
    transaction_id = Column(String(255), nullable=False)
    original_transaction_id = Column(String(255), nullable=False, index=True)
    jws_receipt = Column(Text, nullable=False)
    environment = Column(String(50), nullable=False)  # Production | Sandbox
    purchase_date = Column(BigInteger, nullable=False)  # epoch ms
    expiration_date = Column(BigInteger, nullable=False, index=True)  # epoch ms
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_ios_transaction_id"),
        Index("idx_ios_user_expiration", "user_id", "expiration_date"),
    )
