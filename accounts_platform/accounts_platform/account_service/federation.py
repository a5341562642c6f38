"""
Federated login through external identity providers.

Each provider knows how to fetch its profile payload for an access token and
how to map it onto a ``FederatedProfile``. The account resolver only ever
sees the normalized profile, so adding a provider means adding one class
to ``PROVIDERS``.
"""
from typing import Any, Dict, Optional
import logging

import httpx
from sqlalchemy.orm import Session

from .accounts import resolve_federated_account
from .config import settings
from .errors import FederationFailure
from .schemas import FederatedProfile, PrivateProfile
from .validation import is_email, is_picture_uri

logger = logging.getLogger(__name__)


class IdentityProvider:
    name = ""

    def fetch(self, client: httpx.Client, access_token: str) -> httpx.Response:
        raise NotImplementedError

    def normalize(self, payload: Dict[str, Any]) -> FederatedProfile:
        raise NotImplementedError

    @staticmethod
    def _profile(email: Any, username: Any, picture: Any) -> FederatedProfile:
        if is_email(email):
            raise ValueError("provider payload has no usable email")
        if picture is not None and is_picture_uri(picture):
            picture = None
        if username is not None and not isinstance(username, str):
            username = None
        return FederatedProfile(email=email, username=username, picture=picture)


class GoogleProvider(IdentityProvider):
    name = "google"

    def fetch(self, client: httpx.Client, access_token: str) -> httpx.Response:
        return client.get(
            settings.GOOGLE_USERINFO_URL,
            params={"alt": "json", "access_token": access_token},
        )

    def normalize(self, payload: Dict[str, Any]) -> FederatedProfile:
        # v1 userinfo says verified_email, the OpenID endpoint email_verified
        verified = payload.get("verified_email", payload.get("email_verified"))
        if verified not in (True, "true"):
            raise ValueError("provider email is not verified")
        return self._profile(payload.get("email"), payload.get("given_name"), payload.get("picture"))


class FacebookProvider(IdentityProvider):
    name = "facebook"

    def fetch(self, client: httpx.Client, access_token: str) -> httpx.Response:
        return client.get(
            settings.FACEBOOK_PROFILE_URL,
            params={"fields": "first_name,email,picture", "access_token": access_token},
        )

    def normalize(self, payload: Dict[str, Any]) -> FederatedProfile:
        # Graph API nests the picture as {"picture": {"data": {"url": ...}}}
        picture = ((payload.get("picture") or {}).get("data") or {}).get("url")
        return self._profile(payload.get("email"), payload.get("first_name"), picture)


PROVIDERS: Dict[str, IdentityProvider] = {
    provider.name: provider for provider in (GoogleProvider(), FacebookProvider())
}


def get_profile(
    provider_name: str,
    access_token: str,
    client: Optional[httpx.Client] = None,
) -> FederatedProfile:
    """
    Exchange a provider access token for a normalized profile.

    Network errors, rejected tokens and malformed payloads all raise the
    same FederationFailure; the cause is only logged.
    """
    provider = PROVIDERS.get(provider_name)
    if provider is None:
        logger.warning("Federated login with unknown provider %r", provider_name)
        raise FederationFailure()

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=settings.PROVIDER_TIMEOUT_SECONDS)
    try:
        response = provider.fetch(client, access_token)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("provider payload is not an object")
        return provider.normalize(payload)
    except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Federated login with %s failed: %s", provider.name, e.__class__.__name__)
        raise FederationFailure(provider.name) from e
    finally:
        if owns_client:
            client.close()


def authenticate(
    db: Session,
    provider_name: str,
    access_token: str,
    client: Optional[httpx.Client] = None,
) -> PrivateProfile:
    """Log in (or sign up) through ``provider_name``."""
    profile = get_profile(provider_name, access_token, client=client)
    return resolve_federated_account(db, profile, provider_name)
