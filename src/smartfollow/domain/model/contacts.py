"""Contact records and the aggregate follow-list state."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from .identifier import HumanIdentifier  # noqa: TC001
from .identity import Identity  # noqa: TC001

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class FollowEntry:
    """One follow edge as published in a follow-list event."""

    identity: Identity
    relay: str | None = None
    petname: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ContactRecord:
    identity: Identity
    identifier: HumanIdentifier | None = None
    verified_at: datetime | None = None
    relay: str | None = None
    petname: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.identifier is not None

    def bound_to(
        self,
        identifier: HumanIdentifier | None,
        *,
        verified_at: datetime | None = None,
    ) -> ContactRecord:
        return replace(self, identifier=identifier, verified_at=verified_at)

    def same_binding(self, other: ContactRecord) -> bool:
        """Whether both records render the same on the wire and in the resolved view."""

        return (
            self.identity == other.identity
            and self.identifier == other.identifier
            and self.relay == other.relay
            and self.petname == other.petname
        )

    @classmethod
    def from_entry(cls, entry: FollowEntry) -> ContactRecord:
        return cls(identity=entry.identity, relay=entry.relay, petname=entry.petname)


class ContactListState(Mapping[Identity, ContactRecord]):
    """Immutable mapping of followed identities to their records.

    Partition membership is derived from each record, so an identity is either
    resolved (bound to an identifier) or unresolved, never both.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[ContactRecord] = ()) -> None:
        self._records: dict[Identity, ContactRecord] = {}
        for record in records:
            self._records[record.identity] = record

    def __getitem__(self, identity: Identity) -> ContactRecord:
        return self._records[identity]

    def __iter__(self) -> Iterator[Identity]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContactListState):
            return NotImplemented
        return self._records == other._records

    def __hash__(self) -> int:
        return hash(frozenset(self._records.items()))

    def __repr__(self) -> str:
        return (
            f"ContactListState(resolved={len(self.resolved)}, "
            f"unresolved={len(self.unresolved)})"
        )

    @property
    def records(self) -> tuple[ContactRecord, ...]:
        return tuple(self._records.values())

    @property
    def resolved(self) -> dict[HumanIdentifier, Identity]:
        return {
            record.identifier: record.identity
            for record in self._records.values()
            if record.identifier is not None
        }

    @property
    def unresolved(self) -> frozenset[Identity]:
        return frozenset(
            record.identity for record in self._records.values() if record.identifier is None
        )

    def with_records(self, records: Iterable[ContactRecord]) -> ContactListState:
        """Return a copy with ``records`` inserted or replaced."""

        merged = dict(self._records)
        for record in records:
            merged[record.identity] = record
        return ContactListState(merged.values())

    def without(self, identities: Iterable[Identity]) -> ContactListState:
        dropped = set(identities)
        return ContactListState(
            record for identity, record in self._records.items() if identity not in dropped
        )


class ChangeKind(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    BOUND = "bound"
    UNBOUND = "unbound"
    REBOUND = "rebound"
    DRIFTED = "drifted"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True, kw_only=True)
class ContactChange:
    identity: Identity
    kind: ChangeKind
    before: ContactRecord | None = None
    after: ContactRecord | None = None
    drifted_from: Identity | None = None
    drifted_to: Identity | None = None


@dataclass(frozen=True, slots=True)
class UpdateDelta:
    """Records whose published representation changed during one run."""

    changes: Mapping[Identity, ContactChange]

    def __len__(self) -> int:
        return len(self.changes)

    def __contains__(self, identity: object) -> bool:
        return identity in self.changes

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def of_kind(self, kind: ChangeKind) -> tuple[ContactChange, ...]:
        return tuple(change for change in self.changes.values() if change.kind is kind)

    @property
    def records(self) -> tuple[ContactRecord, ...]:
        """New versions of every changed record that is still followed."""

        return tuple(change.after for change in self.changes.values() if change.after is not None)
