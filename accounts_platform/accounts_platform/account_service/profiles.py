"""
Response views of a user row. Salt and password hash never leave here.
"""
from typing import Optional

from .models import User
from .schemas import PrivateProfile, PublicProfile


def public_view(user: User) -> PublicProfile:
    return PublicProfile(username=user.username, picture=user.picture)


def private_view(
    user: User,
    access_token: Optional[str] = None,
    password_update: Optional[bool] = None,
) -> PrivateProfile:
    """Owner-only view; ``password_update`` is set on update responses only."""
    return PrivateProfile(
        username=user.username,
        picture=user.picture,
        email=user.email,
        access_token=access_token,
        password_update=password_update,
    )
