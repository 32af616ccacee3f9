"""
Errors raised by the storefront client.

Nothing here is retried automatically: a caller either fixes its input
(ValidationError, RequestError), signs in (AuthorizationError) or tries
again later (ServiceError).
"""
from typing import Optional


class StorefrontClientError(Exception):
    """Base class for client errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(StorefrontClientError):
    """Input rejected locally, no request was sent."""


class AuthorizationError(StorefrontClientError):
    """Missing, expired or insufficient credentials (401/403)."""


class SignInRequired(AuthorizationError):
    """The action needs an authenticated user and none is signed in."""

    def __init__(self, message: str = "Please sign in to continue"):
        super().__init__(message)


class RequestError(StorefrontClientError):
    """The server refused the request (400/404/409/422); `detail` says why."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail, status_code)
        self.detail = detail


class ServiceError(StorefrontClientError):
    """Network failure or unexpected server error."""
