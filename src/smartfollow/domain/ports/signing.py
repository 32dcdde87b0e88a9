"""Port for the key holder that signs outgoing events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from smartfollow.domain.model import Event, Identity, UnsignedEvent


@runtime_checkable
class EventSigner(Protocol):
    def public_key(self) -> Identity: ...

    def sign(self, event: UnsignedEvent) -> Event:
        """Attach id and signature, raising ``SigningError`` on failure."""
        ...


__all__ = ["EventSigner"]
