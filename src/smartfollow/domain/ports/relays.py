"""Ports for talking to relays."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from smartfollow.domain.model import Event, EventFilter


@dataclass(slots=True)
class PublishResult:
    """Per-relay outcome of publishing one event."""

    event_id: str
    accepted: list[str] = field(default_factory=list[str])
    rejected: dict[str, str] = field(default_factory=dict[str, str])

    @property
    def ok(self) -> bool:
        return bool(self.accepted)


@runtime_checkable
class RelayClient(Protocol):
    """Fetch and publish events.

    ``fetch_events`` raises ``TransportError`` only when no relay could be
    queried; a relay that answers with zero events is not an error.
    """

    async def fetch_events(self, event_filter: EventFilter) -> list[Event]: ...

    async def publish_event(self, event: Event) -> PublishResult: ...


__all__ = ["PublishResult", "RelayClient"]
