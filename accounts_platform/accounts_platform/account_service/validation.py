"""
Composable field checks.

A predicate takes a value and returns an error message, or None when the
value is acceptable. ``check`` runs a sequence of ``Check`` entries and
collects the failures in order.
"""
import re
from typing import Any, Callable, List, NamedTuple, Optional
from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.orm import Session

from .schemas import FieldError
from .store import email_owner, username_owner

Predicate = Callable[[Any], Optional[str]]

FIELD_REQUIRED = "field required"
INVALID_EMAIL = "Invalid email address."

# Used with fullmatch; a ``$`` anchor would accept a trailing newline
USERNAME_RE = re.compile(r"[\w.\-]+( [\w.\-]+)*")
UPLOAD_RE = re.compile(r"upload:[A-Za-z0-9._\-]{1,200}")

USERNAME_MIN_LENGTH = 2
USERNAME_MAX_LENGTH = 32
EMAIL_MAX_LENGTH = 254


class Check(NamedTuple):
    field: str
    data: Any
    predicate: Predicate
    required: bool = False


def all_of(*predicates: Predicate) -> Predicate:
    """Passes when every predicate passes; reports the first failure."""
    def combined(value: Any) -> Optional[str]:
        for predicate in predicates:
            message = predicate(value)
            if message:
                return message
        return None
    return combined


def any_of(*predicates: Predicate) -> Predicate:
    """Passes when at least one predicate passes."""
    def combined(value: Any) -> Optional[str]:
        messages = []
        for predicate in predicates:
            message = predicate(value)
            if not message:
                return None
            messages.append(message)
        return messages[0] if messages else None
    return combined


def check(*checks: Check) -> List[FieldError]:
    """
    Run every check and return the failures in the order given.

    Absent data (None) is an error for required checks and skipped
    otherwise. An empty list means everything passed.
    """
    errors = []
    for item in checks:
        if item.data is None:
            if item.required:
                errors.append(FieldError(field=item.field, message=FIELD_REQUIRED))
            continue
        message = item.predicate(item.data)
        if message:
            errors.append(FieldError(field=item.field, message=message))
    return errors


def is_email(value: Any) -> Optional[str]:
    if not isinstance(value, str) or len(value) > EMAIL_MAX_LENGTH or value != value.strip():
        return INVALID_EMAIL
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return INVALID_EMAIL
    return None


def is_username(value: Any) -> Optional[str]:
    if (
        not isinstance(value, str)
        or not USERNAME_MIN_LENGTH <= len(value) <= USERNAME_MAX_LENGTH
        or not USERNAME_RE.fullmatch(value)
    ):
        return (
            f"Username must be {USERNAME_MIN_LENGTH} to {USERNAME_MAX_LENGTH} letters, "
            "digits, '.', '_' or '-', separated by single spaces."
        )
    return None


def is_password(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return "Password must be a non-empty string."
    return None


def is_picture_uri(value: Any) -> Optional[str]:
    if isinstance(value, str):
        parsed = urlparse(value)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            return None
    return "Invalid picture URI."


def is_picture_file(value: Any) -> Optional[str]:
    if isinstance(value, str) and UPLOAD_RE.fullmatch(value):
        return None
    return "Invalid uploaded picture reference."


is_picture = any_of(is_picture_uri, is_picture_file)


def email_available(db: Session, exclude_user_id: Optional[int] = None) -> Predicate:
    """Fails when another account already uses the email."""
    def predicate(value: Any) -> Optional[str]:
        owner = email_owner(db, value)
        if owner is not None and owner != exclude_user_id:
            return "This email address is already used."
        return None
    return predicate


def username_available(db: Session, exclude_user_id: Optional[int] = None) -> Predicate:
    def predicate(value: Any) -> Optional[str]:
        owner = username_owner(db, value)
        if owner is not None and owner != exclude_user_id:
            return "This username is already used."
        return None
    return predicate
