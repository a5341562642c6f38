"""
User lookups shared by the validator and the workflows.

Email and username comparisons are case-insensitive.
"""
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import User


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def find_user_by_username(db: Session, username: str) -> Optional[User]:
    return (
        db.query(User)
        .filter(func.lower(User.username) == username.lower())
        .order_by(User.id)
        .first()
    )


def email_owner(db: Session, email: str) -> Optional[int]:
    """Return the id of the account using this email, or None."""
    row = db.query(User.id).filter(User.email == email.lower()).first()
    return row[0] if row else None


def username_owner(db: Session, username: str) -> Optional[int]:
    row = (
        db.query(User.id)
        .filter(func.lower(User.username) == username.lower())
        .first()
    )
    return row[0] if row else None
