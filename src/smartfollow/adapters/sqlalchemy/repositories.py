"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select

from smartfollow.adapters.sqlalchemy.mappings import (
    FOLLOW_LIST_META_ID,
    contacts_table,
    follow_list_meta_table,
)
from smartfollow.domain.errors import IdentifierParseError, InvalidIdentityError
from smartfollow.domain.model import (
    ContactListState,
    ContactRecord,
    parse_identifier,
    parse_identity,
)

if TYPE_CHECKING:
    from sqlalchemy import Row
    from sqlalchemy.orm import Session

log = getLogger(__name__)


class SqlAlchemyContactRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def load_state(self) -> ContactListState:
        rows = self.session.execute(select(contacts_table).order_by(contacts_table.c.pubkey))
        records = [record for row in rows if (record := _record_from_row(row)) is not None]
        return ContactListState(records)

    def replace_state(self, state: ContactListState) -> None:
        self.session.execute(delete(contacts_table))
        if not state:
            return
        self.session.execute(
            insert(contacts_table),
            [
                {
                    "pubkey": record.identity,
                    "nip05": str(record.identifier) if record.identifier else None,
                    "verified_at": record.verified_at,
                    "relay": record.relay,
                    "petname": record.petname,
                }
                for record in state.records
            ],
        )

    def load_follow_list_content(self) -> str:
        stmt = select(follow_list_meta_table.c.content).where(
            follow_list_meta_table.c.id == FOLLOW_LIST_META_ID
        )
        return self.session.execute(stmt).scalar_one_or_none() or ""

    def save_follow_list_content(self, content: str) -> None:
        self.session.execute(
            delete(follow_list_meta_table).where(follow_list_meta_table.c.id == FOLLOW_LIST_META_ID)
        )
        self.session.execute(
            insert(follow_list_meta_table).values(id=FOLLOW_LIST_META_ID, content=content)
        )


def _record_from_row(row: Row[Any]) -> ContactRecord | None:
    mapping = row._mapping  # noqa: SLF001
    try:
        identity = parse_identity(mapping["pubkey"])
    except InvalidIdentityError:
        log.warning("Ignoring stored contact with invalid key %r", mapping["pubkey"])
        return None
    identifier = None
    if mapping["nip05"]:
        try:
            identifier = parse_identifier(mapping["nip05"])
        except IdentifierParseError:
            log.warning(
                "Stored identifier %r for %s is malformed; treating as unbound",
                mapping["nip05"],
                identity,
            )
    return ContactRecord(
        identity=identity,
        identifier=identifier,
        verified_at=mapping["verified_at"] if identifier else None,
        relay=mapping["relay"],
        petname=mapping["petname"],
    )
