"""Unit tests for settings, the instance file and instance resolution."""

from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from n8n_sync.config import ConfigStore, InstanceConfig, SyncSettings, resolve_instance
from n8n_sync.errors import ConfigError

_ENV_VARS = (
    "LOG_LEVEL",
    "N8N_SYNC_CONFIG_PATH",
    "N8N_REQUEST_TIMEOUT",
    "N8N_INSTANCE",
    "N8N_URL",
    "N8N_API_KEY",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _instance(name: str, url: str = "https://n8n.example.com") -> InstanceConfig:
    return InstanceConfig(name=name, url=url, api_key=f"key-{name}")


def test_settings_defaults() -> None:
    settings = SyncSettings()

    assert settings.log_level == "WARNING"
    assert settings.request_timeout_seconds == 300.0
    assert settings.config_path.name == "config.json"
    assert settings.env_instance is None


def test_settings_load_from_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "N8N_URL=https://ci.example.com\nN8N_API_KEY=ci-key\nN8N_REQUEST_TIMEOUT=30\n",
        encoding="utf-8",
    )

    settings = SyncSettings()

    assert settings.request_timeout_seconds == 30.0
    env_instance = settings.env_instance
    assert env_instance is not None
    assert env_instance.name == "env"
    assert env_instance.url == "https://ci.example.com"
    assert env_instance.api_key == "ci-key"


def test_settings_require_url_and_key_together(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("N8N_URL", "https://n8n.example.com")

    with pytest.raises(ValidationError, match="must be set together"):
        SyncSettings()


def test_instance_url_is_validated() -> None:
    assert _instance("a", url=" https://n8n.example.com/ ").url == "https://n8n.example.com"

    with pytest.raises(ValidationError):
        _instance("a", url="n8n.example.com")


def test_store_load_missing_file_is_empty(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "missing" / "config.json")

    config = store.load()

    assert config.instances == {}
    assert config.current_instance == ""
    assert not store.exists()


def test_store_rejects_malformed_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")

    with pytest.raises(ConfigError, match="failed to parse config"):
        ConfigStore(path).load()


def test_first_instance_becomes_current_and_file_is_private(tmp_path: Path) -> None:
    path = tmp_path / "conf" / "config.json"
    store = ConfigStore(path)

    store.add_instance(_instance("dev"))
    store.add_instance(_instance("prod"))

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["currentInstance"] == "dev"
    assert raw["instances"]["prod"] == {
        "name": "prod",
        "url": "https://n8n.example.com",
        "apiKey": "key-prod",
    }
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_add_instance_can_make_current(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    store.add_instance(_instance("dev"))

    config = store.add_instance(_instance("prod"), make_current=True)

    assert config.current_instance == "prod"


def test_use_and_remove_instances(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    for name in ("dev", "staging", "prod"):
        store.add_instance(_instance(name))

    assert store.use_instance("prod").current_instance == "prod"
    with pytest.raises(ConfigError, match="'qa' not found"):
        store.use_instance("qa")

    config = store.remove_instance("prod")
    assert list(config.instances) == ["dev", "staging"]
    assert config.current_instance == "dev"

    store.remove_instance("dev")
    assert store.remove_instance("staging").current_instance == ""
    with pytest.raises(ConfigError):
        store.remove_instance("staging")


def test_resolve_prefers_environment_instance(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    store.add_instance(_instance("dev"))
    settings = SyncSettings(n8n_url="https://ci.example.com", n8n_api_key="ci")

    resolved = resolve_instance(settings, store, name="dev")

    assert resolved.name == "env"
    assert resolved.url == "https://ci.example.com"


def test_resolve_order_name_then_setting_then_current(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")
    for name in ("dev", "staging", "prod"):
        store.add_instance(_instance(name))

    assert resolve_instance(SyncSettings(), store).name == "dev"
    assert resolve_instance(SyncSettings(instance="staging"), store).name == "staging"
    assert resolve_instance(SyncSettings(instance="staging"), store, name="prod").name == "prod"

    with pytest.raises(ConfigError, match="'qa' not found"):
        resolve_instance(SyncSettings(), store, name="qa")


def test_resolve_without_configuration_points_at_init(tmp_path: Path) -> None:
    store = ConfigStore(tmp_path / "config.json")

    with pytest.raises(ConfigError, match="config init"):
        resolve_instance(SyncSettings(), store)
