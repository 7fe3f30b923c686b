from typing import Optional


class AuthError(Exception):
    """Raised by a session provider when a token refresh fails."""


class DeliveryError(Exception):
    """Base class for ledger delivery failures."""


class Unauthenticated(DeliveryError):
    """No usable bearer token, even after one refresh attempt."""


class DeliveryFailed(DeliveryError):
    """Network or server error talking to the ledger. Not retried."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnknownPrompt(ValueError):
    """No feedback prompt is on record for the transaction id."""


class InvalidCategory(ValueError):
    """Category is not one of the fixed candidate categories."""
