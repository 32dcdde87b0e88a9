"""Persistence ports for the follow-list state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from smartfollow.domain.model import ContactListState


class ContactRepository(Protocol):
    def load_state(self) -> ContactListState: ...

    def replace_state(self, state: ContactListState) -> None:
        """Store ``state`` as the whole follow list, dropping absent identities."""
        ...

    def load_follow_list_content(self) -> str: ...

    def save_follow_list_content(self, content: str) -> None: ...


__all__ = ["ContactRepository"]
