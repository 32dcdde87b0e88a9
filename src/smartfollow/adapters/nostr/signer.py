"""Schnorr signing backed by ``nostr-sdk`` keys."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from nostr_sdk import Keys, NostrSdkError

from smartfollow.domain.errors import SigningError
from smartfollow.domain.model import Event, parse_identity

from .serialization import compute_event_id

if TYPE_CHECKING:
    from smartfollow.domain.model import Identity, UnsignedEvent

log = getLogger(__name__)


class NostrSdkSigner:
    """Sign events with a secret key given as hex or ``nsec``."""

    def __init__(self, secret_key: str) -> None:
        try:
            self._keys = Keys.parse(secret_key.strip())
        except NostrSdkError as exc:
            raise SigningError("Could not parse the configured private key") from exc
        self._public_key = parse_identity(self._keys.public_key().to_hex())

    def public_key(self) -> Identity:
        return self._public_key

    def sign(self, event: UnsignedEvent) -> Event:
        if event.pubkey != self._public_key:
            raise SigningError(
                f"Refusing to sign event for {event.pubkey}; key belongs to {self._public_key}"
            )
        event_id = compute_event_id(event)
        try:
            signature = self._keys.sign_schnorr(bytes.fromhex(event_id))
        except NostrSdkError as exc:
            raise SigningError(f"Signing event {event_id} failed") from exc
        log.debug("Signed kind %d event %s", event.kind, event_id)
        return Event(
            id=event_id,
            pubkey=event.pubkey,
            created_at=event.created_at,
            kind=event.kind,
            tags=event.tags,
            content=event.content,
            sig=signature,
        )
