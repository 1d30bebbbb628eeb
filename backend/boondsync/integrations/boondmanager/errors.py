"""
BoondManager error taxonomy.

Transport failures are classified once, in the client, so callers can
decide how to degrade (retry, omit a document, fail a single record).
"""

from typing import Optional


class BoondError(Exception):
    """Base class for all BoondManager integration errors."""

    status_code: Optional[int] = None

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.endpoint = endpoint


class BoondConfigError(BoondError):
    """Raised when a client cannot be built from the configured credentials."""
    pass


class BoondAuthError(BoondError):
    """Raised when the API rejects a freshly minted token."""
    pass


class BoondNotFoundError(BoondError):
    """Raised when an external id does not exist in the environment."""
    status_code = 404


class BoondPermissionError(BoondError):
    """
    Raised when the credential lacks access to an endpoint or document.

    Never retried: retrying cannot change an authorization decision.
    """
    status_code = 403
    permission_error = True


class BoondValidationError(BoondError):
    """Raised for malformed ids, filters, views or environment names."""
    status_code = 400


class TransientNetworkError(BoondError):
    """
    Retryable failure: network error, timeout, 5xx or 429.

    ``not_applied`` is True only when the request certainly never reached
    the server (connection refused, rate-limited), which makes it safe to
    retry non-idempotent writes.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        not_applied: bool = False,
    ):
        super().__init__(message, status_code=status_code, endpoint=endpoint)
        self.not_applied = not_applied


class RemoteServiceError(BoondError):
    """Non-retryable 4xx other than permission / not-found / validation."""
    pass


class WriteForbiddenError(BoondError):
    """Raised when a write is attempted against production."""
    status_code = 403
