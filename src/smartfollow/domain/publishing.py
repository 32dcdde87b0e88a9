"""Build and publish the follow-list event for a reconciled state."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from smartfollow.domain.errors import TransportError
from smartfollow.domain.model import FOLLOW_EDGE_MARKER, EventKind, UnsignedEvent
from smartfollow.domain.reconciliation.merge import follow_entries

if TYPE_CHECKING:
    from collections.abc import Callable

    from smartfollow.domain.model import ContactListState, ContactRecord, Event, Identity, Tag
    from smartfollow.domain.ports import EventSigner, PublishResult, RelayClient

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _tag_for(record: ContactRecord) -> Tag:
    tag = [FOLLOW_EDGE_MARKER, record.identity, record.relay or "", record.petname or ""]
    while len(tag) > 2 and not tag[-1]:  # noqa: PLR2004
        tag.pop()
    return tuple(tag)


def build_follow_list_tags(state: ContactListState) -> tuple[Tag, ...]:
    """Resolved follows first (by identifier), then unresolved ones (by key)."""

    resolved = sorted(
        (record for record in state.values() if record.identifier is not None),
        key=lambda record: (str(record.identifier), record.identity),
    )
    unresolved = sorted(
        (record for record in state.values() if record.identifier is None),
        key=lambda record: record.identity,
    )
    return tuple(_tag_for(record) for record in (*resolved, *unresolved))


def follow_list_differs(state: ContactListState, event: Event | None) -> bool:
    """Whether publishing ``state`` would change the follow list in ``event``."""

    if event is None:
        return bool(state)
    published: dict[Identity, tuple[str | None, str | None]] = {
        identity: (entry.relay, entry.petname) for identity, entry in follow_entries(event).items()
    }
    current = {identity: (record.relay, record.petname) for identity, record in state.items()}
    return published != current


def build_follow_list_event(
    state: ContactListState,
    owner: Identity,
    *,
    content: str = "",
    created_at: int | None = None,
) -> UnsignedEvent:
    return UnsignedEvent(
        pubkey=owner,
        created_at=created_at if created_at is not None else int(_utcnow().timestamp()),
        kind=EventKind.CONTACT_LIST,
        tags=build_follow_list_tags(state),
        content=content,
    )


async def publish_follow_list(
    state: ContactListState,
    *,
    signer: EventSigner,
    relays: RelayClient,
    content: str = "",
    clock: Callable[[], datetime] = _utcnow,
) -> PublishResult:
    """Sign and publish ``state`` as the owner's follow list.

    Signing happens before anything is sent, so a ``SigningError`` leaves the
    relays untouched. Raises ``TransportError`` when no relay accepted the event.
    """

    unsigned = build_follow_list_event(
        state,
        signer.public_key(),
        content=content,
        created_at=int(clock().timestamp()),
    )
    event = signer.sign(unsigned)
    result = await relays.publish_event(event)
    if not result.ok:
        reasons = "; ".join(f"{relay}: {reason}" for relay, reason in result.rejected.items())
        raise TransportError(f"No relay accepted follow list {event.id}: {reasons or 'no relays'}")
    log.info(
        "Published follow list %s with %d follows to %d relays",
        event.id,
        len(event.tags),
        len(result.accepted),
    )
    for relay, reason in result.rejected.items():
        log.warning("Relay %s rejected follow list: %s", relay, reason)
    return result
