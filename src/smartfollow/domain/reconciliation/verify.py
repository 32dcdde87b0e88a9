"""Identifier verification against the authoritative lookup.

Responsibilities of this stage:
- parse the claimed identifier (malformed claims never reach the lookup)
- query the lookup collaborator and compare the returned identity
- isolate every per-candidate failure into an ``Unresolvable`` result

``verify_claims`` runs one worker per claim with bounded concurrency. Workers
only return their own result; the caller folds results after all workers join.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from smartfollow.domain.errors import (
    IdentifierLookupError,
    IdentifierParseError,
    InvalidIdentityError,
    LookupFailure,
)
from smartfollow.domain.model import parse_identifier, parse_identity

from .contracts import (
    Confirmed,
    Drifted,
    ResultsByIdentity,
    Unresolvable,
    UnresolvableReason,
    VerificationResult,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from smartfollow.domain.model import Identity
    from smartfollow.domain.ports import IdentifierLookup

log = getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


async def verify_claim(
    identity: Identity,
    claimed: str,
    lookup: IdentifierLookup,
) -> VerificationResult:
    """Verify that ``claimed`` currently resolves to ``identity``."""

    try:
        identifier = parse_identifier(claimed)
    except IdentifierParseError as exc:
        return Unresolvable(
            identity=identity,
            claimed=claimed,
            reason=UnresolvableReason.PARSE_ERROR,
            detail=str(exc),
        )

    try:
        fetched = await lookup(identifier.domain, identifier.local_part)
        current = parse_identity(fetched)
    except IdentifierLookupError as exc:
        reason = (
            UnresolvableReason.NOT_FOUND
            if exc.reason is LookupFailure.NOT_FOUND
            else UnresolvableReason.LOOKUP_FAILED
        )
        log.info("Could not verify %s for %s: %s", identifier, identity, exc)
        return Unresolvable(identity=identity, claimed=claimed, reason=reason, detail=str(exc))
    except (TimeoutError, InvalidIdentityError) as exc:
        log.info("Could not verify %s for %s: %s", identifier, identity, exc)
        return Unresolvable(
            identity=identity,
            claimed=claimed,
            reason=UnresolvableReason.LOOKUP_FAILED,
            detail=str(exc) or type(exc).__name__,
        )
    except Exception as exc:  # noqa: BLE001
        log.exception("Lookup of %s for %s failed unexpectedly", identifier, identity)
        return Unresolvable(
            identity=identity,
            claimed=claimed,
            reason=UnresolvableReason.LOOKUP_FAILED,
            detail=f"{type(exc).__name__}: {exc}",
        )

    if current == identity:
        return Confirmed(identity=identity, identifier=identifier)
    log.info("Identifier %s now points to %s instead of %s", identifier, current, identity)
    return Drifted(identity=identity, identifier=identifier, current_identity=current)


async def verify_claims(
    claims: Mapping[Identity, str],
    lookup: IdentifierLookup,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    timeout: float | None = None,
    cancel: asyncio.Event | None = None,
) -> ResultsByIdentity:
    """Verify every claim with at most ``max_concurrency`` lookups in flight.

    When ``timeout`` elapses or ``cancel`` is set no new lookups start, in-flight
    lookups are abandoned, and every unfinished claim yields
    ``Unresolvable(CANCELLED)``. The returned mapping is keyed by identity in
    the order of ``claims``.
    """

    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")
    if not claims:
        return {}

    semaphore = asyncio.Semaphore(max_concurrency)
    stop = asyncio.Event()

    def stopped() -> bool:
        return stop.is_set() or (cancel is not None and cancel.is_set())

    async def worker(identity: Identity, claimed: str) -> VerificationResult:
        async with semaphore:
            if stopped():
                return _cancelled(identity, claimed)
            return await verify_claim(identity, claimed, lookup)

    tasks = {
        identity: asyncio.create_task(worker(identity, claimed), name=f"verify:{identity}")
        for identity, claimed in claims.items()
    }
    await _wait_for_workers(set(tasks.values()), timeout=timeout, cancel=cancel)

    unfinished = [task for task in tasks.values() if not task.done()]
    if unfinished:
        stop.set()
        log.warning("Verification stopped with %d lookups unfinished", len(unfinished))
        for task in unfinished:
            task.cancel()
        await asyncio.gather(*unfinished, return_exceptions=True)

    results: ResultsByIdentity = {}
    for identity, task in tasks.items():
        if task.cancelled():
            results[identity] = _cancelled(identity, claims[identity])
        else:
            results[identity] = task.result()
    return results


async def _wait_for_workers(
    pending: set[asyncio.Task[VerificationResult]],
    *,
    timeout: float | None,
    cancel: asyncio.Event | None,
) -> None:
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    cancel_waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
    try:
        while pending:
            if cancel is not None and cancel.is_set():
                return
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return
            waiting: set[asyncio.Future[object]] = set(pending)
            if cancel_waiter is not None:
                waiting.add(cancel_waiter)
            await asyncio.wait(waiting, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            pending = {task for task in pending if not task.done()}
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()


def _cancelled(identity: Identity, claimed: str) -> Unresolvable:
    return Unresolvable(
        identity=identity,
        claimed=claimed,
        reason=UnresolvableReason.CANCELLED,
        detail="verification cancelled before completion",
    )
