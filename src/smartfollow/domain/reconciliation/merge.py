"""Follow-set merging.

Responsibilities of this stage:
- select the authoritative follow-list event among relay responses
- extract follow edges from its tags
- combine the fresh follow set with the stored state under a named policy

The latest owner-authored follow list is authoritative and replaces the stored
membership (``FollowSetPolicy.REPLACE``). Replacing drops identities, so the
dropped set is always returned to the caller for reporting.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from smartfollow.domain.errors import InvalidIdentityError
from smartfollow.domain.model import (
    FOLLOW_EDGE_MARKER,
    ContactListState,
    ContactRecord,
    EventKind,
    FollowEntry,
    parse_identity,
)

from .contracts import FollowSetPolicy

if TYPE_CHECKING:
    from collections.abc import Iterable

    from smartfollow.domain.model import Event, Identity

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeOutcome:
    state: ContactListState
    entries: dict[Identity, FollowEntry]
    dropped: frozenset[Identity]
    source_event: Event | None = None


def select_latest_follow_list(events: Iterable[Event], owner: Identity) -> Event | None:
    """Return the owner's newest follow-list event.

    Equal timestamps are tie-broken by the greatest event id, which keeps the
    choice stable regardless of relay response order.
    """

    latest: Event | None = None
    for event in events:
        if event.kind != EventKind.CONTACT_LIST or event.pubkey != owner:
            continue
        if latest is None or (event.created_at, event.id) > (latest.created_at, latest.id):
            latest = event
    return latest


def follow_entries(event: Event) -> dict[Identity, FollowEntry]:
    """Extract follow edges from ``event`` in tag order, first occurrence wins."""

    entries: dict[Identity, FollowEntry] = {}
    for tag in event.tags:
        if len(tag) < 2 or tag[0] != FOLLOW_EDGE_MARKER:
            continue
        try:
            identity = parse_identity(tag[1])
        except InvalidIdentityError:
            log.debug("Ignoring follow tag with invalid key %r in event %s", tag[1], event.id)
            continue
        if identity in entries:
            continue
        relay = tag[2] if len(tag) > 2 and tag[2] else None  # noqa: PLR2004
        petname = tag[3] if len(tag) > 3 and tag[3] else None  # noqa: PLR2004
        entries[identity] = FollowEntry(identity=identity, relay=relay, petname=petname)
    return entries


def merge_follow_set(events: Iterable[Event], owner: Identity) -> frozenset[Identity]:
    """Return the deduplicated follow set named by the owner's latest follow list."""

    latest = select_latest_follow_list(events, owner)
    if latest is None:
        return frozenset()
    return frozenset(follow_entries(latest))


def apply_follow_set(
    prior: ContactListState,
    events: Iterable[Event],
    owner: Identity,
    *,
    policy: FollowSetPolicy = FollowSetPolicy.REPLACE,
) -> MergeOutcome:
    """Combine the fetched follow list with ``prior`` into the candidate state.

    Records already known keep their identifier binding; relay hints and petnames
    come from the fetched list. When no follow list is found the stored
    membership is kept unchanged, since there is nothing authoritative to replace
    it with.
    """

    latest = select_latest_follow_list(events, owner)
    if latest is None:
        log.warning("No follow list found for %s; keeping %d stored follows", owner, len(prior))
        return MergeOutcome(state=prior, entries={}, dropped=frozenset())

    entries = follow_entries(latest)
    records: list[ContactRecord] = []
    for identity, entry in entries.items():
        known = prior.get(identity)
        if known is None:
            records.append(ContactRecord.from_entry(entry))
        else:
            records.append(
                ContactRecord(
                    identity=identity,
                    identifier=known.identifier,
                    verified_at=known.verified_at,
                    relay=entry.relay,
                    petname=entry.petname,
                )
            )

    if policy is FollowSetPolicy.UNION:
        kept = [record for identity, record in prior.items() if identity not in entries]
        return MergeOutcome(
            state=ContactListState([*records, *kept]),
            entries=entries,
            dropped=frozenset(),
            source_event=latest,
        )

    dropped = frozenset(prior).difference(entries)
    if dropped:
        log.warning(
            "Follow list %s replaces stored state: dropping %d identities no longer followed",
            latest.id,
            len(dropped),
        )
    return MergeOutcome(
        state=ContactListState(records),
        entries=entries,
        dropped=dropped,
        source_event=latest,
    )
