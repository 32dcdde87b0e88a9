"""Shared reconciliation contract components.

This module holds only:
- claim and verification-result variants
- ``*ByIdentity`` mapping aliases
- policy and run-state enums
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from smartfollow.domain.model import HumanIdentifier, Identity


@dataclass(frozen=True, slots=True, kw_only=True)
class MetadataClaim:
    """One identifier claim read from a metadata event."""

    identity: Identity
    identifier: str
    created_at: int
    event_id: str = ""


type ClaimsByIdentity = dict[Identity, MetadataClaim]


class VerificationStatus(StrEnum):
    CONFIRMED = "confirmed"
    DRIFTED = "drifted"
    UNRESOLVABLE = "unresolvable"


class UnresolvableReason(StrEnum):
    PARSE_ERROR = "parse_error"
    LOOKUP_FAILED = "lookup_failed"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True, kw_only=True)
class Confirmed:
    """The lookup maps the identifier to the claimed identity."""

    identity: Identity
    identifier: HumanIdentifier
    status: Literal[VerificationStatus.CONFIRMED] = VerificationStatus.CONFIRMED


@dataclass(frozen=True, slots=True, kw_only=True)
class Drifted:
    """The lookup maps the identifier to ``current_identity`` instead."""

    identity: Identity
    identifier: HumanIdentifier
    current_identity: Identity
    status: Literal[VerificationStatus.DRIFTED] = VerificationStatus.DRIFTED


@dataclass(frozen=True, slots=True, kw_only=True)
class Unresolvable:
    identity: Identity
    claimed: str
    reason: UnresolvableReason
    detail: str | None = None
    status: Literal[VerificationStatus.UNRESOLVABLE] = VerificationStatus.UNRESOLVABLE


type VerificationResult = Confirmed | Drifted | Unresolvable
type ResultsByIdentity = dict[Identity, VerificationResult]


class FollowSetPolicy(StrEnum):
    """How a freshly fetched follow list combines with the stored one."""

    REPLACE = "replace"
    UNION = "union"


class DriftPolicy(StrEnum):
    """What to follow once an identifier resolves to a different identity."""

    FOLLOW_CURRENT = "follow-current"
    KEEP_ORIGINAL = "keep-original"


class RunState(StrEnum):
    IDLE = "idle"
    MERGING = "merging"
    RESOLVING = "resolving"
    VERIFYING = "verifying"
    PARTITIONING = "partitioning"
    DONE = "done"
    FAILED = "failed"
