"""Event id computation."""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smartfollow.domain.model import UnsignedEvent


def serialize_for_id(event: UnsignedEvent) -> str:
    """Canonical ``[0, pubkey, created_at, kind, tags, content]`` serialization."""

    return json.dumps(
        [
            0,
            event.pubkey,
            event.created_at,
            int(event.kind),
            [list(tag) for tag in event.tags],
            event.content,
        ],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_event_id(event: UnsignedEvent) -> str:
    return hashlib.sha256(serialize_for_id(event).encode("utf-8")).hexdigest()
