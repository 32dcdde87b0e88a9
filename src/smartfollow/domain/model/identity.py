"""Public-key identities as they appear on the wire."""

from __future__ import annotations

import re
from typing import Final

from smartfollow.domain.errors import InvalidIdentityError

type Identity = str

IDENTITY_HEX_LENGTH: Final[int] = 64
_IDENTITY_RE = re.compile(r"[0-9a-f]{64}")


def parse_identity(value: object) -> Identity:
    """Return ``value`` as a lowercase hex identity or raise ``InvalidIdentityError``."""

    if not isinstance(value, str):
        raise InvalidIdentityError(f"Identity must be a string, got {type(value).__name__}")
    normalized = value.strip().lower()
    if not _IDENTITY_RE.fullmatch(normalized):
        raise InvalidIdentityError(
            f"Not a {IDENTITY_HEX_LENGTH}-character hex public key: {value!r}"
        )
    return normalized


def is_identity(value: object) -> bool:
    try:
        parse_identity(value)
    except InvalidIdentityError:
        return False
    return True
