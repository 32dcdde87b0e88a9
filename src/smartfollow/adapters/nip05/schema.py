"""Schema of the ``/.well-known/nostr.json`` identifier document."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Nip05Document(BaseModel):
    model_config = ConfigDict(extra="allow")

    names: dict[str, str] = Field(default_factory=dict)
    relays: dict[str, list[str]] | None = None

    def relays_for(self, pubkey: str) -> list[str]:
        if self.relays is None:
            return []
        return list(self.relays.get(pubkey, []))
