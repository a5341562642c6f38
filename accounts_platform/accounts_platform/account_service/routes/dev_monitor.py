"""
Dev Monitor Router - Development-only endpoint for account event inspection.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..models import AuthEvent
from ..utils.event_logger import client_ip

router = APIRouter(prefix="/dev", tags=["dev-monitor"])
logger = logging.getLogger(__name__)

MAX_EVENT_LIMIT = 1000


@router.get("/event-logs")
def get_event_logs(
    request: Request,
    limit: int = 50,
    event_type: Optional[str] = None,
    email: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Get recent account events (development only).

    Args:
        limit: Maximum number of events to return (default 50, max 1000)
        event_type: Filter by event type (optional)
        email: Filter by account email (optional)

    Returns:
        List of account events as dictionaries, newest first

    Raises:
        404: If DEV_MODE is not enabled
        400: If limit exceeds 1000
    """
    if not settings.DEV_MODE:
        logger.warning(
            "Attempt to access /dev/event-logs with DEV_MODE disabled from IP %s",
            client_ip(request) or 'unknown'
        )
        raise HTTPException(status_code=404, detail="Not found")

    if limit > MAX_EVENT_LIMIT:
        raise HTTPException(
            status_code=400,
            detail=f"Limit cannot exceed {MAX_EVENT_LIMIT} events"
        )

    query = db.query(AuthEvent)

    if event_type:
        query = query.filter(AuthEvent.event_type == event_type)

    if email:
        query = query.filter(AuthEvent.email == email.lower())

    events = query.order_by(AuthEvent.timestamp.desc()).limit(limit).all()

    logger.info(
        "Dev event logs accessed: limit=%s, event_type=%s, email=%s, results=%s, ip=%s",
        limit, event_type, email, len(events), client_ip(request) or 'unknown'
    )

    return [event.to_dict() for event in events]
