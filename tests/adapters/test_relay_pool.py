from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest

from smartfollow.adapters.nostr import RelayPool
from smartfollow.adapters.nostr.schema import NostrEvent
from smartfollow.config import RelayConfig
from smartfollow.domain.errors import TransportError
from smartfollow.domain.model import EventFilter, EventKind
from tests.helpers.nostr import ABC, DEF, OWNER, follow_list

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from smartfollow.domain.model import Event

type Script = Callable[[list[object]], list[list[object]]]


class FakeConnection:
    """Answers each sent frame with the frames returned by ``script``."""

    def __init__(self, script: Script) -> None:
        self.script = script
        self.sent: list[list[object]] = []
        self._inbox: asyncio.Queue[str] = asyncio.Queue()

    async def send(self, message: str) -> None:
        frame = json.loads(message)
        self.sent.append(frame)
        for reply in self.script(frame):
            self._inbox.put_nowait(json.dumps(reply))

    async def recv(self) -> str:
        return await self._inbox.get()


class FakeNetwork:
    def __init__(self, scripts: dict[str, Script | OSError]) -> None:
        self.scripts = scripts
        self.connections: dict[str, FakeConnection] = {}

    def connect(self, url: str, *, open_timeout: float) -> object:
        @asynccontextmanager
        async def session() -> AsyncIterator[FakeConnection]:
            script = self.scripts[url]
            if isinstance(script, OSError):
                raise script
            connection = FakeConnection(script)
            self.connections[url] = connection
            yield connection

        return session()


def _wire(event: Event) -> dict[str, object]:
    return NostrEvent.from_domain(event).model_dump()


def _serving(*events: Event) -> Script:
    def script(frame: list[object]) -> list[list[object]]:
        if frame[0] != "REQ":
            return []
        subscription = frame[1]
        return [
            ["NOTICE", "hello"],
            *(["EVENT", subscription, _wire(event)] for event in events),
            ["EVENT", "other-subscription", _wire(events[0])] if events else ["NOTICE", "-"],
            ["EOSE", subscription],
        ]

    return script


def _accepting(ok: bool, reason: str = "") -> Script:  # noqa: FBT001
    def script(frame: list[object]) -> list[list[object]]:
        if frame[0] != "EVENT":
            return []
        event = frame[1]
        assert isinstance(event, dict)
        return [["OK", event["id"], ok, reason]]

    return script


def _silent(frame: list[object]) -> list[list[object]]:
    return []


def _pool(network: FakeNetwork, **overrides: float) -> RelayPool:
    config = RelayConfig(urls=tuple(network.scripts), **overrides)
    return RelayPool(config, connect=network.connect)


def test_fetch_merges_and_dedupes_relays() -> None:
    shared = follow_list(OWNER, [ABC])
    other = follow_list(OWNER, [DEF], created_at=200)
    network = FakeNetwork({"wss://one": _serving(shared), "wss://two": _serving(shared, other)})

    events = asyncio.run(
        _pool(network).fetch_events(EventFilter(authors=(OWNER,), kinds=(EventKind.CONTACT_LIST,)))
    )

    assert sorted(event.id for event in events) == sorted([shared.id, other.id])
    request = network.connections["wss://one"].sent[0]
    assert request[0] == "REQ"
    assert request[2] == {"authors": [OWNER], "kinds": [3]}
    assert network.connections["wss://one"].sent[-1] == ["CLOSE", request[1]]


def test_fetch_survives_one_failing_relay() -> None:
    event = follow_list(OWNER, [ABC])
    network = FakeNetwork({"wss://down": OSError("refused"), "wss://up": _serving(event)})

    events = asyncio.run(_pool(network).fetch_events(EventFilter(authors=(OWNER,))))

    assert [item.id for item in events] == [event.id]


def test_fetch_raises_when_every_relay_fails() -> None:
    network = FakeNetwork({"wss://a": OSError("refused"), "wss://b": _silent})

    with pytest.raises(TransportError, match="No relay answered"):
        asyncio.run(_pool(network, fetch_timeout_seconds=0.05).fetch_events(EventFilter()))


def test_fetch_skips_malformed_events() -> None:
    def script(frame: list[object]) -> list[list[object]]:
        if frame[0] != "REQ":
            return []
        return [
            ["EVENT", frame[1], {"id": "x", "pubkey": "nope", "created_at": 1, "kind": 0}],
            ["EVENT", frame[1], {"garbage": True}],
            ["EOSE", frame[1]],
        ]

    network = FakeNetwork({"wss://a": script})

    assert asyncio.run(_pool(network).fetch_events(EventFilter())) == []


def test_publish_collects_acknowledgements() -> None:
    event = follow_list(OWNER, [ABC])
    network = FakeNetwork(
        {
            "wss://yes": _accepting(True),
            "wss://no": _accepting(False, "blocked: spam"),
            "wss://mute": _silent,
        }
    )

    result = asyncio.run(_pool(network, publish_timeout_seconds=0.05).publish_event(event))

    assert result.ok
    assert result.accepted == ["wss://yes"]
    assert result.rejected == {
        "wss://no": "blocked: spam",
        "wss://mute": "no acknowledgement",
    }
    sent = network.connections["wss://yes"].sent[0]
    assert sent == ["EVENT", _wire(event)]


def test_pool_requires_relays() -> None:
    with pytest.raises(ValueError, match="relay"):
        RelayPool(RelayConfig(urls=()))
