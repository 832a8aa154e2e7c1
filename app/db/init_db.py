"""
Table creation for environments that do not run Alembic migrations.
"""
import logging
from app.db.session import engine
from app.db.base import Base
from app.db import models  # noqa: F401  registers every model on Base.metadata

logger = logging.getLogger(__name__)


def init_db():
    """Create any missing tables. Existing tables are left untouched."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
