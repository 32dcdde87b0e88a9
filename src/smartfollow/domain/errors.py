"""Error taxonomy shared by the reconciliation core and its adapters."""

from __future__ import annotations

from enum import StrEnum


class SmartFollowError(RuntimeError):
    """Base class for smart-follow domain errors."""


class InvalidIdentityError(SmartFollowError, ValueError):
    """Raised when a value is not a hex-encoded public key."""


class IdentifierParseError(SmartFollowError, ValueError):
    """Raised when a human-readable identifier does not match the grammar."""

    def __init__(self, value: str, *, reason: str = "malformed") -> None:
        super().__init__(f"Malformed identifier {value!r}: {reason}")
        self.value = value
        self.reason = reason


class LookupFailure(StrEnum):
    NOT_FOUND = "not_found"
    LOOKUP_FAILED = "lookup_failed"


class IdentifierLookupError(SmartFollowError):
    """Raised by identifier lookups that could not produce a public key."""

    def __init__(
        self, message: str, *, reason: LookupFailure = LookupFailure.LOOKUP_FAILED
    ) -> None:
        super().__init__(message)
        self.reason = reason


class TransportError(SmartFollowError):
    """Raised when relays cannot be reached or reject every request."""


class SigningError(SmartFollowError):
    """Raised when an event cannot be signed with the configured key."""


class ReconciliationFailedError(SmartFollowError):
    """Raised when a reconciliation run cannot proceed at all."""
