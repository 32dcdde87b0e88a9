from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from itertools import count
from typing import TYPE_CHECKING

from smartfollow.adapters.nostr.serialization import compute_event_id
from smartfollow.domain.errors import IdentifierLookupError, LookupFailure, TransportError
from smartfollow.domain.model import Event, EventKind, UnsignedEvent
from smartfollow.domain.ports import PublishResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from smartfollow.domain.model import EventFilter, Identity

_ids = count(1)


def key(prefix: str) -> str:
    """Pad a short hex prefix to a full 64-character key."""

    return prefix.ljust(64, "0")


OWNER = key("face")
ABC = key("abc")
DEF = key("def")
GHI = key("9ab")


def _next_id() -> str:
    return f"{next(_ids):064x}"


def follow_list(
    owner: str,
    follows: Iterable[str | tuple[str, ...]],
    *,
    created_at: int = 100,
    event_id: str | None = None,
    content: str = "",
) -> Event:
    tags = tuple(
        ("p", follow) if isinstance(follow, str) else ("p", *follow) for follow in follows
    )
    return Event(
        id=event_id or _next_id(),
        pubkey=owner,
        created_at=created_at,
        kind=EventKind.CONTACT_LIST,
        tags=tags,
        content=content,
    )


def metadata(
    pubkey: str,
    identifier: str | None,
    *,
    created_at: int = 100,
    event_id: str | None = None,
    content: str | None = None,
) -> Event:
    if content is None:
        content = "{}" if identifier is None else f'{{"name": "x", "nip05": "{identifier}"}}'
    return Event(
        id=event_id if event_id is not None else _next_id(),
        pubkey=pubkey,
        created_at=created_at,
        kind=EventKind.METADATA,
        content=content,
    )


@dataclass
class FakeRelays:
    events: list[Event] = field(default_factory=list)
    failing_kinds: set[int] = field(default_factory=set)
    reject_publish: bool = False
    filters: list[EventFilter] = field(default_factory=list)
    published: list[Event] = field(default_factory=list)

    async def fetch_events(self, event_filter: EventFilter) -> list[Event]:
        self.filters.append(event_filter)
        kinds = set(event_filter.kinds or ())
        if kinds & self.failing_kinds:
            raise TransportError("no relay answered")
        return [
            event
            for event in self.events
            if (event_filter.authors is None or event.pubkey in event_filter.authors)
            and (event_filter.kinds is None or event.kind in event_filter.kinds)
        ]

    async def publish_event(self, event: Event) -> PublishResult:
        self.published.append(event)
        if self.reject_publish:
            return PublishResult(event_id=event.id, rejected={"wss://fake": "blocked"})
        return PublishResult(event_id=event.id, accepted=["wss://fake"])


@dataclass
class FakeLookup:
    """Answers ``local@domain`` lookups from a table; values may be exceptions."""

    table: Mapping[str, str | BaseException] = field(default_factory=dict)
    delays: Mapping[str, float] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def __call__(self, domain: str, local_part: str) -> Identity:
        name = f"{local_part}@{domain}"
        self.calls.append(name)
        delay = self.delays.get(name)
        if delay:
            await asyncio.sleep(delay)
        answer = self.table.get(name)
        if answer is None:
            raise IdentifierLookupError(f"{name} unknown", reason=LookupFailure.NOT_FOUND)
        if isinstance(answer, BaseException):
            raise answer
        return answer


class FakeSigner:
    def __init__(self, owner: str = OWNER) -> None:
        self.owner = owner
        self.signed: list[UnsignedEvent] = []

    def public_key(self) -> Identity:
        return self.owner

    def sign(self, event: UnsignedEvent) -> Event:
        self.signed.append(event)
        return Event(
            id=compute_event_id(event),
            pubkey=event.pubkey,
            created_at=event.created_at,
            kind=event.kind,
            tags=event.tags,
            content=event.content,
            sig="5" * 128,
        )
