"""Port for resolving human-readable identifiers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from smartfollow.domain.model import Identity


@runtime_checkable
class IdentifierLookup(Protocol):
    """Return the public key a domain publishes for ``local_part``.

    Implementations raise ``IdentifierLookupError`` with a ``NOT_FOUND`` reason
    when the document or name is absent and ``LOOKUP_FAILED`` otherwise.
    """

    async def __call__(self, domain: str, local_part: str) -> Identity: ...


__all__ = ["IdentifierLookup"]
