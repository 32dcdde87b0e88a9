"""Identifier claims from identity-metadata events.

Per identity only the claim with the greatest ``created_at`` is kept. The
result does not depend on the order events arrive in: equal timestamps are
tie-broken by the greater event id. Events without ids fall back to arrival
order (later-processed wins), which is the only order-dependent case.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

from smartfollow.domain.model import EventKind

from .contracts import ClaimsByIdentity, MetadataClaim

if TYPE_CHECKING:
    from collections.abc import Iterable, Set

    from smartfollow.domain.model import Event, Identity

log = getLogger(__name__)

IDENTIFIER_FIELD = "nip05"


def resolve_claims(events: Iterable[Event], candidates: Set[Identity]) -> ClaimsByIdentity:
    """Return the newest identifier claim for each candidate that has one."""

    claims: ClaimsByIdentity = {}
    for event in events:
        if event.kind != EventKind.METADATA or event.pubkey not in candidates:
            continue
        claim = claim_from_event(event)
        if claim is None:
            continue
        current = claims.get(claim.identity)
        if current is None or _supersedes(claim, current):
            claims[claim.identity] = claim
    return claims


def resolve_identifiers(events: Iterable[Event], candidates: Set[Identity]) -> dict[Identity, str]:
    return {
        identity: claim.identifier
        for identity, claim in resolve_claims(events, candidates).items()
    }


def claim_from_event(event: Event) -> MetadataClaim | None:
    """Read the identifier field of one metadata event, or ``None`` if absent/malformed."""

    try:
        content = json.loads(event.content)
    except (json.JSONDecodeError, TypeError):
        log.debug("Skipping metadata event %s with non-JSON content", event.id)
        return None
    if not isinstance(content, dict):
        return None
    value = content.get(IDENTIFIER_FIELD)
    if not isinstance(value, str) or not value.strip():
        return None
    return MetadataClaim(
        identity=event.pubkey,
        identifier=value,
        created_at=event.created_at,
        event_id=event.id,
    )


def _supersedes(candidate: MetadataClaim, current: MetadataClaim) -> bool:
    if candidate.created_at != current.created_at:
        return candidate.created_at > current.created_at
    if candidate.event_id or current.event_id:
        return candidate.event_id > current.event_id
    return True
