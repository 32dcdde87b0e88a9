"""The JSON config file holding the owner key and relay list."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError, MissingConfigurationError
from .relays import DEFAULT_RELAYS

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)

PRIVKEY_PLACEHOLDER: Final[str] = "YOUR_HEX_ENCODED_PRIVKEY"


class LookupSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_concurrency: int = Field(default=8, ge=1, le=64)
    timeout_seconds: float = Field(default=10.0, gt=0)
    run_timeout_seconds: float | None = Field(default=None, gt=0)
    # 0 disables caching; cached documents hide drift until they expire.
    cache_ttl_seconds: float = Field(default=0, ge=0)


class LegacyContactList(BaseModel):
    """Contact list as older config files embedded it (identifier -> key, bare keys)."""

    nip05_contacts: dict[str, str] = Field(default_factory=dict)
    unwashed_masses: list[str] = Field(default_factory=list)


class ConfigFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    privkey: str
    relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS))
    lookup: LookupSettings = Field(default_factory=LookupSettings)
    contact_list: LegacyContactList | None = None

    @field_validator("relays")
    @classmethod
    def _check_relays(cls, value: list[str]) -> list[str]:
        cleaned = [relay.strip() for relay in value if relay.strip()]
        if not cleaned:
            raise ValueError("at least one relay is required")
        for relay in cleaned:
            if not relay.startswith(("wss://", "ws://")):
                raise ValueError(f"relay address must use ws:// or wss://: {relay}")
        return cleaned


def default_config() -> ConfigFile:
    return ConfigFile(privkey=PRIVKEY_PLACEHOLDER)


def load_config_file(path: Path) -> ConfigFile:
    """Read and validate ``path``; every failure surfaces as ``ConfigurationError``."""

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MissingConfigurationError(
            f"Config file {path} not found; run the `gen-config` command first"
        ) from exc
    except OSError as exc:
        raise ConfigurationError(f"Could not read config file {path}: {exc}") from exc

    try:
        config = ConfigFile.model_validate(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise ConfigurationError(f"Config file {path} is invalid: {exc}") from exc

    if not config.privkey.strip() or config.privkey == PRIVKEY_PLACEHOLDER:
        raise MissingConfigurationError(f"Set `privkey` in {path} before running")
    return config


def write_config_file(path: Path, config: ConfigFile, *, overwrite: bool = False) -> Path:
    if path.exists() and not overwrite:
        raise ConfigurationError(f"Config file {path} already exists; pass --force to replace it")
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(mode="json", exclude_none=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    log.info("Config file written to %s", path)
    return path
