from typing import Optional
import secrets

from passlib.context import CryptContext
from passlib.hash import pbkdf2_sha256

from .config import settings

# Stored hashes use the modular crypt format, so the scheme and the round
# count travel with every hash and older parameters can be detected later.
pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=settings.PASSWORD_ROUNDS,
    pbkdf2_sha256__min_rounds=settings.PASSWORD_ROUNDS,
)


def generate_salt() -> bytes:
    return secrets.token_bytes(settings.PASSWORD_SALT_BYTES)


def hash_password(password: str, salt: bytes) -> str:
    """Derive the stored hash for ``password`` under a per-user ``salt``."""
    return pbkdf2_sha256.using(salt=salt, rounds=settings.PASSWORD_ROUNDS).hash(password)


def verify_password(password: Optional[str], salt: Optional[bytes], stored_hash: Optional[str]) -> bool:
    """
    Check a candidate password against a stored salt/hash pair.

    Accounts without a local password (federated-only) never verify, but
    still cost one hash so the failure takes as long as a wrong password.
    The digest comparison inside passlib runs in constant time.
    """
    if not password or salt is None or not stored_hash:
        dummy_verify()
        return False
    return pwd_context.verify(password, stored_hash)


def needs_rehash(stored_hash: str) -> bool:
    return pwd_context.needs_update(stored_hash)


def dummy_verify() -> None:
    """Spend the time of one verification when there is no account to check."""
    pwd_context.dummy_verify()
