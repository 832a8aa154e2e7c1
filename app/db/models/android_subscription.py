import uuid
from sqlalchemy import Column, Integer, String, BigInteger, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.db.base import Base


class AndroidSubscription(Base):
    """
    Google Play purchase receipt.

    `order_id` is unique per order. Renewal orders keep the `purchase_token`,
    so the token is indexed but not unique.
    """
    __tablename__ = "android_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(255), nullable=False)
    purchase_token = Column(String(255), nullable=False, index=True)
    order_id = Column(String(255), nullable=False)
    package_name = Column(String(255), nullable=False)
    purchase_date = Column(BigInteger, nullable=False)  # epoch ms
    expiration_date = Column(BigInteger, nullable=False, index=True)  # epoch ms
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_android_order_id"),
        Index("idx_android_user_expiration", "user_id", "expiration_date"),
    )
