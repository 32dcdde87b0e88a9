"""Fold verification results into a new state and diff it against the prior one.

Per-candidate failures never change a record: an ``Unresolvable`` result
leaves the candidate exactly as merging produced it, so a partial run is still
valid to persist and publish.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from smartfollow.domain.model import (
    ChangeKind,
    ContactChange,
    ContactListState,
    ContactRecord,
    UpdateDelta,
)

from .contracts import Confirmed, Drifted, DriftPolicy, ResultsByIdentity

if TYPE_CHECKING:
    from datetime import datetime

    from smartfollow.domain.model import HumanIdentifier, Identity

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class PartitionOutcome:
    state: ContactListState
    drifts: dict[Identity, Identity]


def partition_results(
    candidates: ContactListState,
    results: ResultsByIdentity,
    *,
    verified_at: datetime,
    drift_policy: DriftPolicy = DriftPolicy.FOLLOW_CURRENT,
) -> PartitionOutcome:
    """Return the state after applying ``results`` to ``candidates``.

    Candidates without a result end up unresolved. Confirmed identities are
    bound to their identifier. Drifted identities are handled by
    ``drift_policy``; an identity that confirms its own claim keeps that
    binding even when another identifier drifted onto it. Each identifier ends
    up bound to at most one identity.
    """

    records: dict[Identity, ContactRecord] = {}
    drifted: list[Drifted] = []
    for identity, record in candidates.items():
        result = results.get(identity)
        if result is None:
            records[identity] = record.bound_to(None) if record.is_resolved else record
        elif isinstance(result, Confirmed):
            records[identity] = record.bound_to(result.identifier, verified_at=verified_at)
        elif isinstance(result, Drifted):
            drifted.append(result)
            records[identity] = record
        else:
            records[identity] = record

    confirmed = {
        identity for identity, result in results.items() if isinstance(result, Confirmed)
    }
    before_drift = dict(records)
    drift_targets = {result.current_identity for result in drifted}
    drifts: dict[Identity, Identity] = {}
    for result in drifted:
        drifts[result.identity] = result.current_identity
        records[result.identity] = before_drift[result.identity].bound_to(None)

    if drift_policy is DriftPolicy.FOLLOW_CURRENT:
        # A source that is itself another drift's target stays followed.
        for result in sorted(drifted, key=lambda item: (str(item.identifier), item.identity)):
            target = records.get(result.current_identity)
            if target is not None and (result.current_identity in confirmed or target.is_resolved):
                continue
            if target is None:
                target = ContactRecord(
                    identity=result.current_identity,
                    petname=before_drift[result.identity].petname,
                )
            records[result.current_identity] = target.bound_to(
                result.identifier, verified_at=verified_at
            )
        for source in drifts.keys() - drift_targets:
            del records[source]

    if drifts:
        log.info("Applied %d identifier drifts with policy %s", len(drifts), drift_policy)
    state = ContactListState(_unique_bindings(records, verified_at=verified_at))
    return PartitionOutcome(state=state, drifts=drifts)


def _unique_bindings(
    records: dict[Identity, ContactRecord], *, verified_at: datetime
) -> list[ContactRecord]:
    """Keep one record per identifier, preferring the one verified in this run."""

    holders: dict[HumanIdentifier, Identity] = {}
    unique = dict(records)

    def fresh_first(identity: Identity) -> tuple[bool, Identity]:
        return (records[identity].verified_at != verified_at, identity)

    for identity in sorted(records, key=fresh_first):
        identifier = records[identity].identifier
        if identifier is None:
            continue
        holder = holders.setdefault(identifier, identity)
        if holder != identity:
            log.info("Unbinding %s: %s is already bound to %s", identity, identifier, holder)
            unique[identity] = records[identity].bound_to(None)
    return list(unique.values())


def compute_delta(
    prior: ContactListState,
    current: ContactListState,
    *,
    drifts: dict[Identity, Identity] | None = None,
) -> UpdateDelta:
    """Diff two states; verification timestamps alone never count as a change."""

    drift_sources = drifts or {}
    drift_targets = {target: source for source, target in drift_sources.items()}
    changes: dict[Identity, ContactChange] = {}

    for identity in sorted(set(prior) | set(current)):
        before = prior.get(identity)
        after = current.get(identity)
        drifted_from = drift_targets.get(identity)

        if identity in drift_sources:
            changes[identity] = ContactChange(
                identity=identity,
                kind=ChangeKind.DRIFTED,
                before=before,
                after=after,
                drifted_to=drift_sources[identity],
            )
            continue

        kind = _change_kind(before, after)
        if kind is None:
            continue
        changes[identity] = ContactChange(
            identity=identity,
            kind=kind,
            before=before,
            after=after,
            drifted_from=drifted_from,
        )
    return UpdateDelta(changes)


def _change_kind(before: ContactRecord | None, after: ContactRecord | None) -> ChangeKind | None:
    if before is None and after is None:
        return None
    if before is None:
        return ChangeKind.ADDED
    if after is None:
        return ChangeKind.REMOVED
    if before.same_binding(after):
        return None
    if before.identifier != after.identifier:
        if before.identifier is None:
            return ChangeKind.BOUND
        if after.identifier is None:
            return ChangeKind.UNBOUND
        return ChangeKind.REBOUND
    return ChangeKind.UPDATED
