from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from smartfollow.domain.errors import ReconciliationFailedError
from smartfollow.domain.model import (
    ChangeKind,
    ContactListState,
    ContactRecord,
    EventKind,
    parse_identifier,
)
from smartfollow.domain.reconciliation import (
    Confirmed,
    FollowSetPolicy,
    ReconciliationEngine,
    ReconciliationSettings,
    RunState,
    Unresolvable,
    UnresolvableReason,
    reconcile,
)
from tests.helpers.nostr import ABC, DEF, GHI, OWNER, FakeLookup, FakeRelays, follow_list, metadata

NOW = datetime(2025, 6, 1, 12, tzinfo=UTC)


def _engine(
    relays: FakeRelays,
    lookup: FakeLookup,
    settings: ReconciliationSettings | None = None,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        relays=relays,
        lookup=lookup,
        settings=settings or ReconciliationSettings(),
        clock=lambda: NOW,
    )


def test_full_run_resolves_follows() -> None:
    relays = FakeRelays(
        [
            follow_list(OWNER, [ABC, DEF]),
            metadata(ABC, "a@x.com"),
            metadata(DEF, "d@x.com"),
        ]
    )
    engine = _engine(relays, FakeLookup({"a@x.com": ABC, "d@x.com": DEF}))

    report = asyncio.run(engine.run(OWNER, ContactListState()))

    assert engine.state is RunState.DONE
    assert report.run_state is RunState.DONE
    assert report.state.resolved == {
        parse_identifier("a@x.com"): ABC,
        parse_identifier("d@x.com"): DEF,
    }
    assert {change.kind for change in report.delta.changes.values()} == {ChangeKind.ADDED}
    assert report.counts.resolved == 2
    assert report.follow_list is relays.events[0]


def test_metadata_is_requested_only_for_candidates() -> None:
    relays = FakeRelays([follow_list(OWNER, [ABC]), metadata(GHI, "g@x.com")])

    asyncio.run(_engine(relays, FakeLookup()).run(OWNER, ContactListState()))

    contact_filter, metadata_filter = relays.filters
    assert contact_filter.authors == (OWNER,)
    assert contact_filter.kinds == (EventKind.CONTACT_LIST,)
    assert metadata_filter.authors == (ABC,)
    assert metadata_filter.kinds == (EventKind.METADATA,)


def test_metadata_requests_are_batched() -> None:
    relays = FakeRelays([follow_list(OWNER, [ABC, DEF, GHI])])
    settings = ReconciliationSettings(metadata_batch_size=2)

    asyncio.run(_engine(relays, FakeLookup(), settings).run(OWNER, ContactListState()))

    assert [len(f.authors or ()) for f in relays.filters[1:]] == [2, 1]


def test_drift_is_reported_in_delta() -> None:
    identifier = parse_identifier("a@x.com")
    prior = ContactListState([ContactRecord(identity=ABC, identifier=identifier)])
    relays = FakeRelays([follow_list(OWNER, [ABC]), metadata(ABC, "a@x.com")])

    report = asyncio.run(_engine(relays, FakeLookup({"a@x.com": DEF})).run(OWNER, prior))

    assert report.drifts == {ABC: DEF}
    assert report.delta.changes[ABC].kind is ChangeKind.DRIFTED
    assert report.delta.changes[ABC].drifted_to == DEF
    assert report.state.resolved == {identifier: DEF}
    assert report.counts.drifted == 1


def test_failed_lookup_keeps_run_going() -> None:
    relays = FakeRelays(
        [
            follow_list(OWNER, [ABC, DEF]),
            metadata(ABC, "a@x.com"),
            metadata(DEF, "d@x.com"),
        ]
    )
    lookup = FakeLookup({"a@x.com": TimeoutError(), "d@x.com": DEF})

    report = asyncio.run(_engine(relays, lookup).run(OWNER, ContactListState()))

    assert report.run_state is RunState.DONE
    failure = report.results[ABC]
    assert isinstance(failure, Unresolvable)
    assert failure.reason is UnresolvableReason.LOOKUP_FAILED
    assert isinstance(report.results[DEF], Confirmed)
    assert report.state.unresolved == frozenset({ABC})
    assert report.counts.error == 1
    assert set(report.errors) == {ABC}


def test_malformed_claim_never_reaches_lookup() -> None:
    relays = FakeRelays([follow_list(OWNER, [ABC]), metadata(ABC, "Not@Valid@x")])
    lookup = FakeLookup()

    report = asyncio.run(_engine(relays, lookup).run(OWNER, ContactListState()))

    assert lookup.calls == []
    result = report.results[ABC]
    assert isinstance(result, Unresolvable)
    assert result.reason is UnresolvableReason.PARSE_ERROR


def test_second_run_over_up_to_date_state_has_empty_delta() -> None:
    relays = FakeRelays([follow_list(OWNER, [ABC]), metadata(ABC, "a@x.com")])
    lookup = FakeLookup({"a@x.com": ABC})

    first = asyncio.run(_engine(relays, lookup).run(OWNER, ContactListState()))
    second = asyncio.run(_engine(relays, lookup).run(OWNER, first.state))

    assert not first.delta.is_empty
    assert second.delta.is_empty
    assert second.state == first.state


def test_prior_binding_is_reverified_without_fresh_metadata() -> None:
    identifier = parse_identifier("a@x.com")
    prior = ContactListState([ContactRecord(identity=ABC, identifier=identifier)])
    relays = FakeRelays([follow_list(OWNER, [ABC])])
    lookup = FakeLookup({"a@x.com": ABC})

    report = asyncio.run(_engine(relays, lookup).run(OWNER, prior))

    assert lookup.calls == ["a@x.com"]
    assert report.state[ABC].identifier == identifier


def test_prior_binding_is_dropped_when_reuse_is_off() -> None:
    prior = ContactListState([ContactRecord(identity=ABC, identifier=parse_identifier("a@x.com"))])
    relays = FakeRelays([follow_list(OWNER, [ABC])])
    settings = ReconciliationSettings(reuse_prior_bindings=False)

    report = asyncio.run(_engine(relays, FakeLookup(), settings).run(OWNER, prior))

    assert report.state.unresolved == frozenset({ABC})
    assert report.delta.changes[ABC].kind is ChangeKind.UNBOUND


def test_replace_policy_reports_dropped_follows() -> None:
    prior = ContactListState([ContactRecord(identity=GHI)])
    relays = FakeRelays([follow_list(OWNER, [ABC])])

    report = asyncio.run(_engine(relays, FakeLookup()).run(OWNER, prior))

    assert report.dropped == frozenset({GHI})
    assert report.delta.changes[GHI].kind is ChangeKind.REMOVED
    assert report.warnings


def test_union_policy_keeps_stored_follows() -> None:
    prior = ContactListState([ContactRecord(identity=GHI)])
    relays = FakeRelays([follow_list(OWNER, [ABC])])
    settings = ReconciliationSettings(follow_set_policy=FollowSetPolicy.UNION)

    report = asyncio.run(_engine(relays, FakeLookup(), settings).run(OWNER, prior))

    assert set(report.state) == {ABC, GHI}


def test_metadata_outage_degrades_to_no_claims() -> None:
    relays = FakeRelays([follow_list(OWNER, [ABC])], failing_kinds={EventKind.METADATA})

    report = asyncio.run(_engine(relays, FakeLookup()).run(OWNER, ContactListState()))

    assert report.run_state is RunState.DONE
    assert report.results == {}
    assert any("metadata unavailable" in warning for warning in report.warnings)


def test_follow_list_outage_fails_run() -> None:
    relays = FakeRelays(failing_kinds={EventKind.CONTACT_LIST})
    engine = _engine(relays, FakeLookup())

    with pytest.raises(ReconciliationFailedError):
        asyncio.run(engine.run(OWNER, ContactListState()))
    assert engine.state is RunState.FAILED


def test_invalid_owner_fails_run() -> None:
    engine = _engine(FakeRelays(), FakeLookup())

    with pytest.raises(ReconciliationFailedError, match="owner"):
        asyncio.run(engine.run("npub-not-hex", ContactListState()))
    assert engine.state is RunState.FAILED


def test_reconcile_wraps_async_run() -> None:
    relays = FakeRelays([follow_list(OWNER, [ABC])])

    report = reconcile(_engine(relays, FakeLookup()), OWNER, ContactListState())

    assert set(report.state) == {ABC}
    assert report.counts.unresolved == 1
