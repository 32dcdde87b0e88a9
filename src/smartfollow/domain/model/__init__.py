"""Domain model for follow lists and identifier bindings."""

from __future__ import annotations

from .contacts import (
    ChangeKind,
    ContactChange,
    ContactListState,
    ContactRecord,
    FollowEntry,
    UpdateDelta,
)
from .events import (
    FOLLOW_EDGE_MARKER,
    Event,
    EventFilter,
    EventKind,
    Tag,
    UnsignedEvent,
)
from .identifier import HumanIdentifier, parse_identifier
from .identity import IDENTITY_HEX_LENGTH, Identity, is_identity, parse_identity

__all__ = [
    "FOLLOW_EDGE_MARKER",
    "IDENTITY_HEX_LENGTH",
    "ChangeKind",
    "ContactChange",
    "ContactListState",
    "ContactRecord",
    "Event",
    "EventFilter",
    "EventKind",
    "FollowEntry",
    "HumanIdentifier",
    "Identity",
    "Tag",
    "UnsignedEvent",
    "UpdateDelta",
    "is_identity",
    "parse_identifier",
    "parse_identity",
]
