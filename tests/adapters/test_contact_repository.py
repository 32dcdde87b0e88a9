from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import insert

from smartfollow.adapters.sqlalchemy import StartupError, contacts_table
from smartfollow.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
from smartfollow.domain.model import ContactListState, ContactRecord, parse_identifier
from tests.helpers.nostr import ABC, DEF, GHI

if TYPE_CHECKING:
    from collections.abc import Callable


def _state() -> ContactListState:
    return ContactListState(
        [
            ContactRecord(
                identity=ABC,
                identifier=parse_identifier("a@x.com"),
                verified_at=datetime(2025, 1, 1, 12, tzinfo=UTC),
                relay="wss://r.example",
                petname="abby",
            ),
            ContactRecord(identity=DEF),
        ]
    )


def test_state_round_trips_through_storage(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.contacts.replace_state(_state())
        uow.contacts.save_follow_list_content('{"wss://r.example": {}}')
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert uow.contacts.load_state() == _state()
        assert uow.contacts.load_follow_list_content() == '{"wss://r.example": {}}'


def test_replace_state_drops_absent_identities(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.contacts.replace_state(_state())
        uow.commit()
    with sqlite_unit_of_work() as uow:
        uow.contacts.replace_state(ContactListState([ContactRecord(identity=GHI)]))
        uow.contacts.save_follow_list_content("second")
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert set(uow.contacts.load_state()) == {GHI}
        assert uow.contacts.load_follow_list_content() == "second"


def test_uncommitted_changes_are_discarded(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with pytest.raises(RuntimeError, match="boom"), sqlite_unit_of_work() as uow:
        uow.contacts.replace_state(_state())
        raise RuntimeError("boom")

    with sqlite_unit_of_work() as uow:
        assert len(uow.contacts.load_state()) == 0
        assert uow.contacts.load_follow_list_content() == ""


def test_malformed_rows_are_tolerated(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.session.execute(
            insert(contacts_table),
            [
                {"pubkey": "nope", "nip05": None},
                {"pubkey": ABC, "nip05": "Bad Identifier"},
            ],
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        state = uow.contacts.load_state()

    assert set(state) == {ABC}
    assert state.unresolved == frozenset({ABC})


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyUnitOfWork()
