"""Relay transport configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

DEFAULT_RELAYS: Final[tuple[str, ...]] = ("wss://relay.damus.io",)
OPEN_TIMEOUT_SECONDS: Final[float] = 10.0
FETCH_TIMEOUT_SECONDS: Final[float] = 15.0
PUBLISH_TIMEOUT_SECONDS: Final[float] = 10.0


@dataclass(frozen=True, slots=True)
class RelayConfig:
    urls: tuple[str, ...] = DEFAULT_RELAYS
    open_timeout_seconds: float = OPEN_TIMEOUT_SECONDS
    fetch_timeout_seconds: float = FETCH_TIMEOUT_SECONDS
    publish_timeout_seconds: float = PUBLISH_TIMEOUT_SECONDS
