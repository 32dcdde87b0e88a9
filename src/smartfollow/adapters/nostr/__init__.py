"""Relay and signing adapters for the Nostr protocol."""

from .relay import RelayPool, websocket_connect
from .serialization import compute_event_id, serialize_for_id
from .signer import NostrSdkSigner

__all__ = [
    "NostrSdkSigner",
    "RelayPool",
    "compute_event_id",
    "serialize_for_id",
    "websocket_connect",
]
