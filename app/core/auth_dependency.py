from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.core.security import decode_access_token
from app.db.session import SessionLocal
from app.db.models.user import User
from app.services.user_directory import get_user

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(token: str = Depends(oauth2_scheme)) -> int:
    """Get current user id from JWT token. The auth layer is trusted as given."""
    subject = decode_access_token(token)
    if subject is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        return int(subject)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_user_obj(
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> User:
    """Get current User object from JWT token. Unknown users raise NotFoundError."""
    return get_user(db, user_id)
