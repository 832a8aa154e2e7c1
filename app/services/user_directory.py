from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.db.models.user import User


def get_user(db: Session, user_id: int) -> User:
    """Fetch a live user or raise NotFoundError."""
    user = (
        db.query(User)
        .filter(User.id == user_id, User.deleted_at.is_(None))
        .first()
    )
    if not user:
        raise NotFoundError("User not found")
    return user
