from typing import Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.models.user import User

def get_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return db.get(User, user_id)

def ensure(db: Session, *, user_id: UUID, email: Optional[str], display_name: Optional[str]) -> User:
    """Return the user row for an authenticated subject, creating it on first sight."""
    obj = db.get(User, user_id)
    if obj is not None:
        return obj
    obj = User(id=user_id, email=email, display_name=display_name)
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        # first request of a concurrent pair, or an email already claimed
        db.rollback()
        obj = db.get(User, user_id)
        if obj is None:
            obj = User(id=user_id, email=None, display_name=display_name)
            db.add(obj)
            db.commit()
    return obj
