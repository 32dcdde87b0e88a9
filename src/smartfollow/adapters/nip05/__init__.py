"""Identifier lookup (NIP-05) adapter."""

from __future__ import annotations

from .client import Nip05Client
from .schema import Nip05Document

__all__ = ["Nip05Client", "Nip05Document"]
