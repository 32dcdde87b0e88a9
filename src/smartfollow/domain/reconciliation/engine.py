"""Orchestrator for one reconciliation run.

The engine sequences the stages as a small state machine:

    IDLE -> MERGING -> RESOLVING -> VERIFYING -> PARTITIONING -> DONE

``FAILED`` is reached only when the owner identity is invalid or the owner's
follow list cannot be fetched from any relay. Everything keyed by a single
candidate is isolated into that candidate's verification result.

The prior state is never mutated; each stage produces a new value and the
report carries the final state together with the delta against the prior one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from smartfollow.domain.errors import (
    InvalidIdentityError,
    ReconciliationFailedError,
    TransportError,
)
from smartfollow.domain.model import EventFilter, EventKind, parse_identity

from .contracts import (
    DriftPolicy,
    FollowSetPolicy,
    ResultsByIdentity,
    RunState,
    Unresolvable,
)
from .merge import apply_follow_set
from .metadata import resolve_claims
from .partition import compute_delta, partition_results
from .verify import DEFAULT_MAX_CONCURRENCY, verify_claims

if TYPE_CHECKING:
    from collections.abc import Callable

    from smartfollow.domain.model import ContactListState, Event, Identity, UpdateDelta
    from smartfollow.domain.ports import IdentifierLookup, RelayClient

log = getLogger(__name__)

DEFAULT_METADATA_BATCH_SIZE = 250


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationSettings:
    follow_set_policy: FollowSetPolicy = FollowSetPolicy.REPLACE
    drift_policy: DriftPolicy = DriftPolicy.FOLLOW_CURRENT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    verification_timeout: float | None = None
    reuse_prior_bindings: bool = True
    metadata_batch_size: int = DEFAULT_METADATA_BATCH_SIZE


@dataclass(frozen=True, slots=True)
class BucketCounts:
    resolved: int = 0
    drifted: int = 0
    unresolved: int = 0
    error: int = 0

    def __str__(self) -> str:
        return (
            f"resolved={self.resolved}, drifted={self.drifted}, "
            f"unresolved={self.unresolved}, error={self.error}"
        )


@dataclass(slots=True, kw_only=True)
class ReconciliationReport:
    """Outcome of one run; always complete, even when some lookups failed."""

    owner: Identity
    prior: ContactListState
    state: ContactListState
    delta: UpdateDelta
    results: ResultsByIdentity
    drifts: dict[Identity, Identity]
    dropped: frozenset[Identity]
    follow_list: Event | None = None
    run_state: RunState = RunState.DONE
    warnings: list[str] = field(default_factory=list[str])

    @property
    def counts(self) -> BucketCounts:
        resolved = drifted = unresolved = error = 0
        for identity in set(self.state) | set(self.drifts):
            if identity in self.drifts:
                drifted += 1
            elif isinstance(self.results.get(identity), Unresolvable):
                error += 1
            elif self.state[identity].is_resolved:
                resolved += 1
            else:
                unresolved += 1
        return BucketCounts(resolved=resolved, drifted=drifted, unresolved=unresolved, error=error)

    @property
    def errors(self) -> dict[Identity, Unresolvable]:
        return {
            identity: result
            for identity, result in self.results.items()
            if isinstance(result, Unresolvable)
        }


@dataclass(slots=True)
class ReconciliationEngine:
    """Run merge, resolve, verify and partition for one owner."""

    relays: RelayClient
    lookup: IdentifierLookup
    settings: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    clock: Callable[[], datetime] = _utcnow
    state: RunState = field(default=RunState.IDLE, init=False)

    async def run(
        self,
        owner: str,
        prior: ContactListState,
        *,
        cancel: asyncio.Event | None = None,
    ) -> ReconciliationReport:
        if self.state not in {RunState.IDLE, RunState.DONE, RunState.FAILED}:
            raise RuntimeError(f"Reconciliation already in progress ({self.state})")
        self.state = RunState.IDLE
        warnings: list[str] = []

        try:
            owner_identity = parse_identity(owner)
        except InvalidIdentityError as exc:
            self._transition(RunState.FAILED)
            raise ReconciliationFailedError(f"Invalid owner identity: {exc}") from exc

        self._transition(RunState.MERGING)
        try:
            follow_events = await self.relays.fetch_events(
                EventFilter(authors=(owner_identity,), kinds=(EventKind.CONTACT_LIST,))
            )
        except TransportError as exc:
            self._transition(RunState.FAILED)
            raise ReconciliationFailedError(f"Could not fetch the follow list: {exc}") from exc

        merged = apply_follow_set(
            prior,
            follow_events,
            owner_identity,
            policy=self.settings.follow_set_policy,
        )
        candidates = merged.state
        if merged.source_event is None:
            warnings.append("no follow list found on relays; stored follows kept")
        if merged.dropped:
            warnings.append(
                f"{len(merged.dropped)} identities dropped by the "
                f"{self.settings.follow_set_policy} follow-set policy"
            )

        self._transition(RunState.RESOLVING)
        metadata_events = await self._fetch_metadata(sorted(candidates), warnings)
        claims = {
            identity: claim.identifier
            for identity, claim in resolve_claims(metadata_events, frozenset(candidates)).items()
        }
        if self.settings.reuse_prior_bindings:
            for identity, record in candidates.items():
                if identity not in claims and record.identifier is not None:
                    claims[identity] = str(record.identifier)
        log.info("Resolved %d identifier claims for %d follows", len(claims), len(candidates))

        self._transition(RunState.VERIFYING)
        results = await verify_claims(
            claims,
            self.lookup,
            max_concurrency=self.settings.max_concurrency,
            timeout=self.settings.verification_timeout,
            cancel=cancel,
        )

        self._transition(RunState.PARTITIONING)
        outcome = partition_results(
            candidates,
            results,
            verified_at=self.clock(),
            drift_policy=self.settings.drift_policy,
        )
        delta = compute_delta(prior, outcome.state, drifts=outcome.drifts)

        self._transition(RunState.DONE)
        report = ReconciliationReport(
            owner=owner_identity,
            prior=prior,
            state=outcome.state,
            delta=delta,
            results=results,
            drifts=outcome.drifts,
            dropped=merged.dropped,
            follow_list=merged.source_event,
            run_state=self.state,
            warnings=warnings,
        )
        log.info("Reconciliation finished: %s, changes=%d", report.counts, len(delta))
        return report

    async def _fetch_metadata(self, authors: list[Identity], warnings: list[str]) -> list[Event]:
        events: list[Event] = []
        batch_size = max(1, self.settings.metadata_batch_size)
        for start in range(0, len(authors), batch_size):
            batch = tuple(authors[start : start + batch_size])
            try:
                events.extend(
                    await self.relays.fetch_events(
                        EventFilter(authors=batch, kinds=(EventKind.METADATA,))
                    )
                )
            except TransportError as exc:
                log.warning("Metadata fetch failed for %d authors: %s", len(batch), exc)
                warnings.append(f"metadata unavailable for {len(batch)} follows: {exc}")
        return events

    def _transition(self, target: RunState) -> None:
        log.debug("Reconciliation state %s -> %s", self.state, target)
        self.state = target


def reconcile(
    engine: ReconciliationEngine,
    owner: str,
    prior: ContactListState,
) -> ReconciliationReport:
    """Synchronous entry point around ``ReconciliationEngine.run``."""

    return asyncio.run(engine.run(owner, prior))
