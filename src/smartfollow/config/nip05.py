"""Identifier lookup (NIP-05) configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .http_resilience import CacheConfig, ResilienceConfig, RetryPolicy

WELL_KNOWN_PATH: Final[str] = "/.well-known/nostr.json"
NIP05_TIMEOUT_SECONDS: Final[float] = 10.0
NIP05_USER_AGENT: Final[str] = "smart-follow"


@dataclass(frozen=True, slots=True)
class Nip05Config:
    resilience: ResilienceConfig
    well_known_path: str = WELL_KNOWN_PATH
    scheme: str = "https"


def get_nip05_config(
    *,
    timeout_seconds: float | None = None,
    cache: CacheConfig | None = None,
    resilience: ResilienceConfig | None = None,
) -> Nip05Config:
    return Nip05Config(
        resilience=resilience
        or ResilienceConfig(
            name="nip05",
            timeout_seconds=timeout_seconds or NIP05_TIMEOUT_SECONDS,
            retry=RetryPolicy(),
            cache=cache if cache is not None else CacheConfig(backend="memory"),
            default_headers={"Accept": "application/json", "User-Agent": NIP05_USER_AGENT},
        )
    )
