"""Domain port definitions for adapters."""

from __future__ import annotations

from .lookup import IdentifierLookup
from .persistence import ContactRepository
from .relays import PublishResult, RelayClient
from .signing import EventSigner
from .unit_of_work import ContactUnitOfWork

__all__ = [
    "ContactRepository",
    "ContactUnitOfWork",
    "EventSigner",
    "IdentifierLookup",
    "PublishResult",
    "RelayClient",
]
