"""Human-readable identifiers of the form ``local-part@domain`` (NIP-05)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from smartfollow.domain.errors import IdentifierParseError

_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
_IDENTIFIER_RE = re.compile(rf"(?P<local>[a-z0-9\-_.]+)@(?P<domain>{_LABEL}(?:\.{_LABEL})*)")


@dataclass(frozen=True, slots=True)
class HumanIdentifier:
    local_part: str
    domain: str

    def __str__(self) -> str:
        return f"{self.local_part}@{self.domain}"


def parse_identifier(value: str) -> HumanIdentifier:
    """Parse ``value`` against the full identifier grammar.

    The match is anchored to the whole string. Domains are case-insensitive and
    are lowercased; the local part is already restricted to lowercase.
    """

    if not isinstance(value, str):
        raise IdentifierParseError(repr(value), reason="not a string")
    match = _IDENTIFIER_RE.fullmatch(value)
    if match is None:
        raise IdentifierParseError(value)
    return HumanIdentifier(local_part=match["local"], domain=match["domain"].lower())
