"""
Error taxonomy for account workflows.

Each class maps to one response status. Only InfrastructureFailure is ever
produced by catching an exception; the others come from explicit checks.
"""
from typing import Any, Dict, List, Optional


class AccountError(Exception):
    """Base exception for account workflows."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def body(self) -> Dict[str, Any]:
        """Response body sent to the caller."""
        return {"detail": self.message}


class ValidationFailed(AccountError):
    """One or more fields failed their format checks."""

    status_code = 400

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        super().__init__("Validation failed")

    def body(self) -> Dict[str, Any]:
        return {"errors": [error.model_dump() for error in self.errors]}


class AuthenticationFailure(AccountError):
    """Unknown identifier and wrong password look the same from outside."""

    status_code = 401

    def __init__(self, message: str = "Wrong credentials."):
        super().__init__(message)


class AccountNotFound(AccountError):
    status_code = 404

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class FederationFailure(AccountError):
    """Any provider-side problem, with the detail kept internal."""

    status_code = 409

    def __init__(self, provider: Optional[str] = None):
        self.provider = provider
        if provider:
            super().__init__(f"Bad {provider.capitalize()} token")
        else:
            super().__init__("Bad provider token")


class AvailabilityConflict(AccountError):
    """An identifier is already taken."""

    status_code = 423

    def __init__(self, errors: Optional[List[Any]] = None, payload: Optional[Dict[str, Any]] = None):
        self.errors = list(errors or [])
        self.payload = payload
        super().__init__("Identifier already taken")

    def body(self) -> Dict[str, Any]:
        if self.payload is not None:
            return dict(self.payload)
        return {"errors": [error.model_dump() for error in self.errors]}


class InfrastructureFailure(AccountError):
    """Store or driver failure; the detail is logged, never returned."""

    status_code = 500

    def __init__(self, message: str = "Unable to request the database."):
        super().__init__(message)
