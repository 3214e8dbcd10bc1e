"""Error taxonomy for the credential backend.

The HTTP layer maps each class to a status code; everything else
propagates as-is to the caller with its cause chained.
"""

from typing import Any


class BrokerError(Exception):
    """Base exception for broker errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(BrokerError):
    """Backend configuration is missing or cannot produce a client."""


class NotFoundError(BrokerError):
    """A referenced role does not exist."""


class ValidationError(BrokerError):
    """Rejected input, checked before anything is written."""


class UpstreamError(BrokerError):
    """Transport or decode failure talking to the balena API."""

    def __init__(self, message: str, status_code: int | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.status_code = status_code


class MalformedLeaseError(BrokerError):
    """Lease internal data lacks the fields this broker writes at issuance."""
