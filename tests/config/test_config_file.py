from __future__ import annotations

import json
from pathlib import Path  # noqa: TC003

import pytest

from smartfollow.config import (
    DEFAULT_RELAYS,
    PRIVKEY_PLACEHOLDER,
    ConfigFile,
    ConfigurationError,
    MissingConfigurationError,
    default_config,
    load_config_file,
    write_config_file,
)

PRIVKEY = "0" * 63 + "1"


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_template_round_trips_but_is_rejected_until_edited(tmp_path: Path) -> None:
    path = write_config_file(tmp_path / "nested" / "config.json", default_config())

    written = json.loads(path.read_text(encoding="utf-8"))
    assert written["privkey"] == PRIVKEY_PLACEHOLDER
    assert written["relays"] == list(DEFAULT_RELAYS)
    with pytest.raises(MissingConfigurationError, match="privkey"):
        load_config_file(path)


def test_write_refuses_to_overwrite_without_force(tmp_path: Path) -> None:
    path = _write(tmp_path / "config.json", {"privkey": PRIVKEY})

    with pytest.raises(ConfigurationError, match="--force"):
        write_config_file(path, default_config())
    write_config_file(path, default_config(), overwrite=True)

    assert json.loads(path.read_text(encoding="utf-8"))["privkey"] == PRIVKEY_PLACEHOLDER


def test_load_applies_defaults(tmp_path: Path) -> None:
    config = load_config_file(_write(tmp_path / "config.json", {"privkey": PRIVKEY}))

    assert config.relays == list(DEFAULT_RELAYS)
    assert config.lookup.max_concurrency == 8
    assert config.contact_list is None


def test_load_reads_legacy_contact_list(tmp_path: Path) -> None:
    payload = {
        "privkey": PRIVKEY,
        "relays": ["wss://a.example", " wss://b.example "],
        "contact_list": {"nip05_contacts": {"a@x.com": "ab" * 32}, "unwashed_masses": []},
    }

    config = load_config_file(_write(tmp_path / "config.json", payload))

    assert config.relays == ["wss://a.example", "wss://b.example"]
    assert config.contact_list is not None
    assert config.contact_list.nip05_contacts == {"a@x.com": "ab" * 32}


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(MissingConfigurationError, match="gen-config"):
        load_config_file(tmp_path / "absent.json")


@pytest.mark.parametrize(
    "payload",
    [
        {"privkey": PRIVKEY, "relays": ["https://not-a-relay"]},
        {"privkey": PRIVKEY, "relays": []},
        {"privkey": PRIVKEY, "lookup": {"max_concurrency": 0}},
        {"privkey": PRIVKEY, "lookup": {"unknown": 1}},
        {"relays": ["wss://a.example"]},
        ["not", "an", "object"],
    ],
)
def test_invalid_files_raise_configuration_error(tmp_path: Path, payload: object) -> None:
    with pytest.raises(ConfigurationError):
        load_config_file(_write(tmp_path / "config.json", payload))


def test_non_json_file_raises_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{privkey", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="JSON"):
        load_config_file(path)


def test_blank_privkey_is_missing(tmp_path: Path) -> None:
    with pytest.raises(MissingConfigurationError):
        load_config_file(_write(tmp_path / "config.json", {"privkey": "  "}))


def test_unknown_top_level_keys_are_ignored() -> None:
    config = ConfigFile.model_validate({"privkey": PRIVKEY, "theme": "dark"})

    assert config.privkey == PRIVKEY
