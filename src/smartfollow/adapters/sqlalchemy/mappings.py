"""SQLAlchemy Core tables for the stored follow list."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

FOLLOW_LIST_META_ID: Final[int] = 1


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData()

contacts_table = Table(
    "contacts",
    metadata,
    Column("pubkey", String(64), primary_key=True),
    Column("nip05", String(320), nullable=True, index=True),
    Column("verified_at", UTCDateTime(), nullable=True),
    Column("relay", String(512), nullable=True),
    Column("petname", String(256), nullable=True),
)

# Single-row table holding the content field of the last published follow list.
follow_list_meta_table = Table(
    "follow_list_meta",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("content", Text, nullable=False, default=""),
)


def create_all_tables(engine: Engine) -> None:
    metadata.create_all(engine, checkfirst=True)
