"""
Event logger utility for account lifecycle events.
"""
from datetime import datetime
from typing import Optional
from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from ..models import AUTH_EVENT_TYPES, AuthEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENT_TYPES = set(AUTH_EVENT_TYPES)


def client_ip(request: Request) -> Optional[str]:
    """Client address, falling back to the first X-Forwarded-For hop."""
    if request.client:
        return request.client.host

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first one
        return forwarded.split(",")[0].strip()
    return None


def log_auth_event(
    event_type: str,
    request: Request,
    db: Session,
    email: Optional[str] = None,
    user_id: Optional[int] = None,
    metadata: Optional[dict] = None
) -> None:
    """
    Record an account event in the audit table.

    Args:
        event_type: One of AUTH_EVENT_TYPES
        request: FastAPI Request object
        db: Database session
        email: Email the event concerns, lowercased before storage
        user_id: Account id, when known
        metadata: Optional dictionary of additional context

    Raises:
        ValueError: If event_type is invalid
    """
    if event_type not in ALLOWED_EVENT_TYPES:
        raise ValueError(
            f"Invalid event_type '{event_type}'. Must be one of: {', '.join(sorted(ALLOWED_EVENT_TYPES))}"
        )

    ip_address = client_ip(request)
    user_agent = request.headers.get("user-agent")
    stored_email = email.lower() if isinstance(email, str) else None

    try:
        auth_event = AuthEvent(
            user_id=user_id,
            email=stored_email,
            event_type=event_type,
            ip_address=ip_address,
            user_agent=user_agent,
            timestamp=datetime.utcnow(),
            event_metadata=metadata or {}
        )

        db.add(auth_event)
        db.commit()

        logger.info(
            "AUTH %s user_id=%s email=%s ip=%s",
            event_type, user_id, stored_email, ip_address
        )

    except SQLAlchemyError as e:
        # The audit trail must not break the request it describes
        db.rollback()
        logger.warning(
            "Failed to log auth event - user_id=%s, event_type=%s, error=%s",
            user_id, event_type, e.__class__.__name__
        )
