"""
sphere.errors — Service Error Taxonomy
=======================================

Services raise these; the API layer renders them as ``{"error": message}``
with the matching HTTP status (see :mod:`sphere.api.main`).
"""

from __future__ import annotations


class SphereError(Exception):
    """Base class for every error a service reports to its caller."""

    status_code: int = 500
    kind: str = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Conflict(SphereError):
    status_code = 400
    kind = "conflict"


class InvalidInput(SphereError):
    status_code = 400
    kind = "invalid_input"


class InvalidCredentials(SphereError):
    status_code = 401
    kind = "invalid_credentials"


class RateLimited(SphereError):
    status_code = 401
    kind = "rate_limited"

    def __init__(self, message: str, retry_after_minutes: int) -> None:
        super().__init__(message)
        self.retry_after_minutes = retry_after_minutes


class Forbidden(SphereError):
    status_code = 403
    kind = "forbidden"


class NotFound(SphereError):
    status_code = 404
    kind = "not_found"


class PayloadTooLarge(SphereError):
    # The upload route documents ``400 {error}`` for oversize files.
    status_code = 400
    kind = "payload_too_large"


class Internal(SphereError):
    status_code = 500
    kind = "internal"
