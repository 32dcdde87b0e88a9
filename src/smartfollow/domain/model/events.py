"""Protocol events, reduced to the fields reconciliation reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from .identity import Identity  # noqa: TC001

type Tag = tuple[str, ...]

FOLLOW_EDGE_MARKER = "p"


class EventKind(IntEnum):
    METADATA = 0
    CONTACT_LIST = 3


@dataclass(frozen=True, slots=True, kw_only=True)
class UnsignedEvent:
    """Event body before an id and signature are attached."""

    pubkey: Identity
    created_at: int
    kind: int
    tags: tuple[Tag, ...] = ()
    content: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class Event:
    id: str
    pubkey: Identity
    created_at: int
    kind: int
    tags: tuple[Tag, ...] = ()
    content: str = ""
    sig: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class EventFilter:
    """Subscription filter understood by relays."""

    authors: tuple[Identity, ...] | None = None
    kinds: tuple[int, ...] | None = None
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    extra: dict[str, object] = field(default_factory=dict[str, object])
