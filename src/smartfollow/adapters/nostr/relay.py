"""Websocket relay pool implementing the ``RelayClient`` port."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from smartfollow.domain.errors import InvalidIdentityError, TransportError
from smartfollow.domain.ports import PublishResult

from .schema import (
    InvalidRelayMessageError,
    NostrEvent,
    decode_message,
    encode_message,
    filter_payload,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from contextlib import AbstractAsyncContextManager

    from smartfollow.config.relays import RelayConfig
    from smartfollow.domain.model import Event, EventFilter

log = getLogger(__name__)

CLOSE_TIMEOUT_SECONDS = 5.0
_RELAY_ERRORS = (OSError, TimeoutError, WebSocketException, InvalidRelayMessageError)


class RelayConnection(Protocol):
    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...


type Connect = Callable[..., AbstractAsyncContextManager[RelayConnection]]


def websocket_connect(
    url: str, *, open_timeout: float
) -> AbstractAsyncContextManager[RelayConnection]:
    return websockets.connect(
        url,
        open_timeout=open_timeout,
        close_timeout=CLOSE_TIMEOUT_SECONDS,
        ping_interval=None,
        max_size=None,
    )


class RelayPool:
    """Query and publish to a fixed set of relays concurrently.

    Each operation opens a short-lived connection per relay. A relay that
    fails is logged and skipped; ``fetch_events`` only raises when every
    relay failed.
    """

    def __init__(self, config: RelayConfig, *, connect: Connect | None = None) -> None:
        if not config.urls:
            raise ValueError("RelayPool needs at least one relay URL")
        self._config = config
        self._connect: Connect = connect or websocket_connect

    @property
    def urls(self) -> tuple[str, ...]:
        return self._config.urls

    async def fetch_events(self, event_filter: EventFilter) -> list[Event]:
        payload = filter_payload(event_filter)
        outcomes = await self._gather(lambda url: self._fetch_from(url, payload))

        events: dict[str, Event] = {}
        failures: dict[str, str] = {}
        for url, outcome in zip(self.urls, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                failures[url] = _describe(outcome)
                log.warning("Relay %s failed: %s", url, failures[url])
                continue
            for event in outcome:
                events.setdefault(event.id, event)

        if len(failures) == len(self.urls):
            raise TransportError(
                "No relay answered: " + "; ".join(f"{url}: {why}" for url, why in failures.items())
            )
        log.debug(
            "Fetched %d distinct events from %d relays",
            len(events),
            len(self.urls) - len(failures),
        )
        return list(events.values())

    async def publish_event(self, event: Event) -> PublishResult:
        message = encode_message("EVENT", NostrEvent.from_domain(event).model_dump())
        outcomes = await self._gather(lambda url: self._publish_to(url, message, event.id))

        result = PublishResult(event_id=event.id)
        for url, outcome in zip(self.urls, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                result.rejected[url] = _describe(outcome)
            elif outcome is None:
                result.accepted.append(url)
            else:
                result.rejected[url] = outcome
        for url, reason in result.rejected.items():
            log.warning("Relay %s rejected event %s: %s", url, event.id, reason)
        log.info(
            "Event %s accepted by %d of %d relays",
            event.id,
            len(result.accepted),
            len(self.urls),
        )
        return result

    async def _gather[T](
        self, operation: Callable[[str], Awaitable[T]]
    ) -> Sequence[T | BaseException]:
        outcomes = await asyncio.gather(
            *(operation(url) for url in self.urls), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, _RELAY_ERRORS):
                raise outcome
        return outcomes

    async def _fetch_from(self, url: str, payload: dict[str, object]) -> list[Event]:
        subscription = uuid4().hex[:16]
        events: list[Event] = []
        async with self._connect(url, open_timeout=self._config.open_timeout_seconds) as ws:
            await ws.send(encode_message("REQ", subscription, payload))
            try:
                async with asyncio.timeout(self._config.fetch_timeout_seconds):
                    while True:
                        message = decode_message(await ws.recv())
                        kind = message[0]
                        if kind == "EVENT" and len(message) >= 3 and message[1] == subscription:
                            event = _parse_event(url, message[2])
                            if event is not None:
                                events.append(event)
                        elif kind == "EOSE":
                            break
                        elif kind == "CLOSED":
                            reason = message[2] if len(message) >= 3 else ""
                            raise InvalidRelayMessageError(
                                f"subscription closed by relay: {reason}"
                            )
                        elif kind == "NOTICE":
                            log.info("Notice from %s: %s", url, message[1:])
            except TimeoutError:
                if not events:
                    raise
                log.warning("Relay %s did not finish in time; keeping %d events", url, len(events))
            await ws.send(encode_message("CLOSE", subscription))
        return events

    async def _publish_to(self, url: str, message: str, event_id: str) -> str | None:
        """Return ``None`` when the relay accepted the event, else its reason."""

        async with self._connect(url, open_timeout=self._config.open_timeout_seconds) as ws:
            await ws.send(message)
            try:
                async with asyncio.timeout(self._config.publish_timeout_seconds):
                    while True:
                        reply = decode_message(await ws.recv())
                        if reply[0] == "OK" and len(reply) >= 3 and reply[1] == event_id:
                            reason = str(reply[3]) if len(reply) >= 4 else ""
                            return None if reply[2] is True else (reason or "rejected")
                        if reply[0] == "NOTICE":
                            log.info("Notice from %s: %s", url, reply[1:])
            except TimeoutError:
                return "no acknowledgement"


def _parse_event(url: str, raw: object) -> Event | None:
    try:
        return NostrEvent.model_validate(raw).to_domain()
    except (ValidationError, InvalidIdentityError) as exc:
        log.debug("Skipping malformed event from %s: %s", url, exc)
        return None


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__
