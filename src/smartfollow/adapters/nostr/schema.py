"""Wire schemas for events and relay messages (NIP-01)."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from smartfollow.domain.model import Event, parse_identity

if TYPE_CHECKING:
    from smartfollow.domain.model import EventFilter


class InvalidRelayMessageError(ValueError):
    """Raised when a relay sends something that is not a NIP-01 message."""


class NostrEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    pubkey: str
    created_at: int = Field(ge=0)
    kind: int = Field(ge=0)
    tags: list[list[str]] = Field(default_factory=list)
    content: str = ""
    sig: str = ""

    def to_domain(self) -> Event:
        return Event(
            id=self.id.lower(),
            pubkey=parse_identity(self.pubkey),
            created_at=self.created_at,
            kind=self.kind,
            tags=tuple(tuple(tag) for tag in self.tags),
            content=self.content,
            sig=self.sig,
        )

    @classmethod
    def from_domain(cls, event: Event) -> NostrEvent:
        return cls(
            id=event.id,
            pubkey=event.pubkey,
            created_at=event.created_at,
            kind=event.kind,
            tags=[list(tag) for tag in event.tags],
            content=event.content,
            sig=event.sig,
        )


def filter_payload(event_filter: EventFilter) -> dict[str, object]:
    payload: dict[str, object] = dict(event_filter.extra)
    if event_filter.authors is not None:
        payload["authors"] = list(event_filter.authors)
    if event_filter.kinds is not None:
        payload["kinds"] = [int(kind) for kind in event_filter.kinds]
    if event_filter.since is not None:
        payload["since"] = event_filter.since
    if event_filter.until is not None:
        payload["until"] = event_filter.until
    if event_filter.limit is not None:
        payload["limit"] = event_filter.limit
    return payload


def encode_message(*parts: object) -> str:
    return json.dumps(list(parts), separators=(",", ":"), ensure_ascii=False)


def decode_message(raw: str | bytes) -> list[Any]:
    """Decode one relay frame into its JSON array form."""

    try:
        message = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRelayMessageError(f"Relay sent non-JSON frame: {exc}") from exc
    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        raise InvalidRelayMessageError(f"Relay sent unexpected frame: {str(raw)[:80]}")
    return message  # pyright: ignore[reportUnknownVariableType]
