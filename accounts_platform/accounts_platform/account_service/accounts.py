"""
Account workflows: register, login, update, logout, delete, availability
probes, profile reads, and the account resolver used by federated login.

Every workflow takes the SQLAlchemy session as its first argument and runs
its store reads and writes inside a single ``transaction``.
"""
from typing import Optional
import logging
import re

from sqlalchemy.orm import Session

from . import pictures, tokens
from .db import transaction
from .errors import AccountNotFound, AuthenticationFailure, AvailabilityConflict, ValidationFailed
from .models import User
from .passwords import dummy_verify, generate_salt, hash_password, needs_rehash, verify_password
from .profiles import private_view, public_view
from .schemas import (
    Acknowledgement,
    Availability,
    FederatedProfile,
    LoginRequest,
    PrivateProfile,
    ProfilePatch,
    PublicProfile,
    RegisterRequest,
)
from .store import email_owner, find_user_by_email, find_user_by_username, get_user, username_owner
from .validation import (
    USERNAME_MAX_LENGTH,
    Check,
    check,
    email_available,
    is_email,
    is_password,
    is_picture,
    is_username,
    username_available,
)

logger = logging.getLogger(__name__)

MAX_USERNAME_SUFFIX = 1000


def _provision(
    db: Session,
    email: str,
    username: Optional[str],
    password: Optional[str],
    picture: Optional[str],
    provider: Optional[str] = None,
) -> User:
    # Uniqueness is checked right before the insert, inside the caller's
    # transaction. The unique index on email catches whatever slips through.
    conflicts = check(
        Check("email", email, email_available(db)),
        Check("username", username, username_available(db)),
    )
    if conflicts:
        raise AvailabilityConflict(conflicts)

    salt = password_hash = None
    if password is not None:
        salt = generate_salt()
        password_hash = hash_password(password, salt)

    user = User(
        email=email.lower(),
        username=username,
        picture=pictures.resolve(picture),
        salt=salt,
        password_hash=password_hash,
        auth_provider=provider,
    )
    db.add(user)
    db.flush()
    return user


def register(db: Session, request: RegisterRequest) -> PrivateProfile:
    """Create a local account and return its private view with a fresh token."""
    errors = check(
        Check("email", request.email, is_email, required=True),
        Check("username", request.username, is_username, required=True),
        Check("password", request.password, is_password, required=True),
        Check("picture", request.picture, is_picture),
    )
    if errors:
        raise ValidationFailed(errors)

    with transaction(db):
        user = _provision(db, request.email, request.username, request.password, request.picture)
        access_token = tokens.issue_or_refresh(db, user.id)
        view = private_view(user, access_token)
        user_id = user.id

    logger.info("Registered user_id=%s", user_id)
    return view


def login(db: Session, request: LoginRequest) -> PrivateProfile:
    """
    Verify email and password, then rotate the user's token.

    Unknown email, federated-only account and wrong password all raise the
    same AuthenticationFailure.
    """
    errors = check(
        Check("email", request.email, is_email, required=True),
        Check("password", request.password, is_password, required=True),
    )
    if errors:
        raise ValidationFailed(errors)

    with transaction(db):
        user = find_user_by_email(db, request.email)
        if user is None:
            dummy_verify()
            raise AuthenticationFailure()
        if not verify_password(request.password, user.salt, user.password_hash):
            raise AuthenticationFailure()

        if needs_rehash(user.password_hash):
            user.salt = generate_salt()
            user.password_hash = hash_password(request.password, user.salt)

        access_token = tokens.issue_or_refresh(db, user.id)
        view = private_view(user, access_token)
        user_id = user.id

    logger.info("Login user_id=%s", user_id)
    return view


def update(
    db: Session,
    user_id: int,
    patch: ProfilePatch,
    access_token: Optional[str] = None,
) -> PrivateProfile:
    """
    Apply the supplied fields of ``patch`` to the user.

    A password change needs the current password. When it does not match,
    the password stays as it is and the response reports
    ``passwordUpdate=false`` instead of failing.
    """
    checks = []
    if patch.supplied("email"):
        checks.append(Check("email", patch.email, is_email, required=True))
    if patch.supplied("username"):
        checks.append(Check("username", patch.username, is_username))
    if patch.supplied("picture"):
        checks.append(Check("picture", patch.picture, is_picture))
    if patch.supplied("new_password"):
        checks.append(Check("newPassword", patch.new_password, is_password, required=True))
    errors = check(*checks)
    if errors:
        raise ValidationFailed(errors)

    with transaction(db):
        user = get_user(db, user_id)
        if user is None:
            raise AccountNotFound()

        conflicts = check(
            Check("email", patch.email if patch.supplied("email") else None, email_available(db, user.id)),
            Check("username", patch.username if patch.supplied("username") else None, username_available(db, user.id)),
        )
        if conflicts:
            raise AvailabilityConflict(conflicts)

        if patch.supplied("email"):
            user.email = patch.email.lower()
        if patch.supplied("username"):
            user.username = patch.username
        if patch.supplied("picture"):
            user.picture = pictures.resolve(patch.picture)

        password_update = None
        if patch.supplied("new_password"):
            password_update = verify_password(patch.old_password, user.salt, user.password_hash)
            if password_update:
                user.salt = generate_salt()
                user.password_hash = hash_password(patch.new_password, user.salt)

        db.flush()
        view = private_view(user, access_token, password_update)

    logger.info(
        "Updated user_id=%s fields=%s password_update=%s",
        user_id, sorted(patch.model_fields_set), password_update,
    )
    return view


def logout(db: Session, user_id: int) -> Acknowledgement:
    """Revoke every token of the user. Repeating it is harmless."""
    with transaction(db):
        revoked = tokens.revoke(db, user_id)
    logger.info("Logout user_id=%s revoked=%s", user_id, revoked)
    return Acknowledgement()


def delete_profile(db: Session, user_id: int, password: Optional[str]) -> Acknowledgement:
    """Delete the user, and with it the token row, after checking the password."""
    with transaction(db):
        user = get_user(db, user_id)
        if user is None:
            raise AccountNotFound()
        if not verify_password(password, user.salt, user.password_hash):
            raise AuthenticationFailure("Wrong password.")
        db.delete(user)

    logger.info("Deleted user_id=%s", user_id)
    return Acknowledgement()


def user_from_token(db: Session, access_token: Optional[str]) -> Optional[int]:
    with transaction(db):
        return tokens.lookup(db, access_token)


def get_my_profile(db: Session, user_id: int, access_token: Optional[str] = None) -> PrivateProfile:
    with transaction(db):
        user = get_user(db, user_id)
        if user is None:
            raise AccountNotFound()
        return private_view(user, access_token)


def get_public_profile(db: Session, username: str) -> PublicProfile:
    with transaction(db):
        user = find_user_by_username(db, username)
        if user is None:
            raise AccountNotFound()
        return public_view(user)


def check_email_availability(db: Session, email: Optional[str]) -> Availability:
    """
    Report whether an email can still be registered.

    This probe reveals whether an account exists; the login path never does.
    """
    errors = check(Check("email", email, is_email, required=True))
    if errors:
        raise ValidationFailed(errors)
    with transaction(db):
        taken = email_owner(db, email) is not None
    if taken:
        raise AvailabilityConflict(payload={"email": email, "available": False})
    return Availability(email=email, available=True)


def check_username_availability(db: Session, username: Optional[str]) -> Availability:
    errors = check(Check("username", username, is_username, required=True))
    if errors:
        raise ValidationFailed(errors)
    with transaction(db):
        taken = username_owner(db, username) is not None
    if taken:
        raise AvailabilityConflict(payload={"username": username, "available": False})
    return Availability(username=username, available=True)


def _derive_username(db: Session, display_name: Optional[str]) -> Optional[str]:
    """Turn a provider display name into a free, well-formed username."""
    if not display_name:
        return None
    candidate = re.sub(r"[^\w.\- ]", "", display_name)
    candidate = " ".join(candidate.split())[:USERNAME_MAX_LENGTH].strip()
    if is_username(candidate):
        return None

    base = candidate
    suffix = 1
    while username_owner(db, candidate) is not None:
        suffix += 1
        if suffix > MAX_USERNAME_SUFFIX:
            return None
        tail = str(suffix)
        candidate = base[:USERNAME_MAX_LENGTH - len(tail)].rstrip() + tail
    return candidate


def resolve_federated_account(db: Session, profile: FederatedProfile, provider: str) -> PrivateProfile:
    """
    Log in the account owning ``profile.email``, creating it on first sight.

    Existing accounts keep their stored profile fields. New accounts have no
    local password and are marked with the provider that created them.
    """
    with transaction(db):
        user = find_user_by_email(db, profile.email)
        if user is None:
            username = _derive_username(db, profile.username)
            user = _provision(db, profile.email, username, None, profile.picture, provider=provider)
            logger.info("Provisioned federated user_id=%s provider=%s", user.id, provider)
        access_token = tokens.issue_or_refresh(db, user.id)
        view = private_view(user, access_token)
        user_id = user.id

    logger.info("Federated login user_id=%s provider=%s", user_id, provider)
    return view
