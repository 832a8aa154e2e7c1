"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.user import User
from app.db.models.pairing import Pairing
from app.db.models.ios_subscription import IosSubscription
from app.db.models.android_subscription import AndroidSubscription

__all__ = [
    "User",
    "Pairing",
    "IosSubscription",
    "AndroidSubscription",
]
