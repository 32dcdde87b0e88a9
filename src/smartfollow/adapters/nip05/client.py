"""HTTP client resolving identifiers through domain-hosted documents."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from smartfollow.adapters.http_resilience import ResilientClient
from smartfollow.config.nip05 import Nip05Config, get_nip05_config
from smartfollow.domain.errors import IdentifierLookupError, InvalidIdentityError, LookupFailure
from smartfollow.domain.model import parse_identity

from .schema import Nip05Document

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from smartfollow.config.http_resilience import ResilienceConfig
    from smartfollow.domain.model import Identity
    from smartfollow.domain.ports import IdentifierLookup

log = getLogger(__name__)


class Nip05Client:
    """``IdentifierLookup`` backed by ``https://<domain>/.well-known/nostr.json``.

    One underlying HTTP client is shared by all lookups of a run; use the
    instance as an async context manager to close it.
    """

    def __init__(
        self,
        *,
        config: Nip05Config | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config or get_nip05_config()
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> Nip05Client:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __call__(self, domain: str, local_part: str) -> Identity:
        document = await self.fetch_document(domain, local_part)
        pubkey = document.names.get(local_part)
        if pubkey is None:
            raise IdentifierLookupError(
                f"Name {local_part!r} not listed at {domain}",
                reason=LookupFailure.NOT_FOUND,
            )
        try:
            return parse_identity(pubkey)
        except InvalidIdentityError as exc:
            raise IdentifierLookupError(
                f"{domain} lists an invalid key for {local_part!r}"
            ) from exc

    async def fetch_document(self, domain: str, local_part: str) -> Nip05Document:
        url = f"{self._config.scheme}://{domain}{self._config.well_known_path}"
        client = self._get_client()
        try:
            response = await client.get(url, params={"name": local_part})
        except httpx.TimeoutException as exc:
            raise IdentifierLookupError(f"Timed out fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise IdentifierLookupError(f"Could not fetch {url}: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise IdentifierLookupError(
                f"No identifier document at {url}",
                reason=LookupFailure.NOT_FOUND,
            )
        if response.status_code != httpx.codes.OK:
            raise IdentifierLookupError(f"{url} answered HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise IdentifierLookupError(f"{url} did not return JSON") from exc
        if not isinstance(payload, dict):
            raise IdentifierLookupError(f"Unexpected identifier document at {url}")
        try:
            return Nip05Document.model_validate(payload)
        except ValidationError as exc:
            raise IdentifierLookupError(f"Invalid identifier document at {url}: {exc}") from exc

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            log.debug("Opening identifier lookup client %s", self._config.resilience.name)
            self._client = self._client_factory(self._config.resilience)
        return self._client


if TYPE_CHECKING:
    _lookup_check: IdentifierLookup = Nip05Client()
