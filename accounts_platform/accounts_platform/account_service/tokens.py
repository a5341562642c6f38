"""
Opaque access tokens, one live row per user.

Expiry is only enforced by ``lookup``; expired rows stay in the table until
the next issuance for the same user replaces them.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple
import logging
import uuid

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .config import settings
from .models import Token

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def generate(now: Optional[datetime] = None) -> Tuple[str, datetime]:
    """Return a fresh token string and its expiry time (UTC)."""
    now = now or datetime.utcnow()
    return str(uuid.uuid4()), now + timedelta(seconds=settings.TOKEN_TTL_SECONDS)


def issue_or_refresh(db: Session, user_id: int) -> str:
    """
    Replace the user's token row with a freshly generated token.

    The write is keyed on ``rel_user``, so concurrent issuances for the same
    user leave exactly one row: the last writer's token.
    """
    db.flush()
    access_token, expire_at = generate()
    values = {"access_token": access_token, "rel_user": user_id, "expire_at": expire_at}

    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(Token).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Token.rel_user],
            set_={"access_token": access_token, "expire_at": expire_at},
        )
        db.execute(stmt)
        db.expire_all()
    else:
        row = db.query(Token).filter(Token.rel_user == user_id).first()
        if row is None:
            db.add(Token(**values))
        else:
            row.access_token = access_token
            row.expire_at = expire_at
        db.flush()

    logger.debug("Issued token for user_id=%s expiring %s", user_id, expire_at.isoformat())
    return access_token


def lookup(db: Session, access_token: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    """Return the owning user id for a live token, or None."""
    if not access_token:
        return None
    now = now or datetime.utcnow()
    row = (
        db.query(Token.rel_user)
        .filter(Token.access_token == access_token, Token.expire_at > now)
        .first()
    )
    return row[0] if row else None


def revoke(db: Session, user_id: int) -> int:
    """Delete every token row for the user. Safe to repeat."""
    db.flush()
    count = db.query(Token).filter(Token.rel_user == user_id).delete(synchronize_session=False)
    db.expire_all()
    return count
