"""Configuration for the n8n sync CLI.

Two layers:
- process settings loaded from environment variables and a local `.env` file
  (`SyncSettings`)
- the instance file that `n8n-sync config ...` manages (`ConfigStore`), holding
  named n8n instances with their URL and API key

Setting both `N8N_URL` and `N8N_API_KEY` bypasses the instance file entirely,
which is convenient in CI.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from n8n_sync.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_INSTANCE_NAME = "env"


def _default_config_path() -> Path:
    return Path.home() / ".config" / "n8n-sync" / "config.json"


class SyncSettings(BaseSettings):
    """Process-level settings.

    Environment variables:
    - LOG_LEVEL             (optional, default WARNING)
    - N8N_SYNC_CONFIG_PATH  (optional)
    - N8N_REQUEST_TIMEOUT   (optional, seconds)
    - N8N_INSTANCE          (optional instance name override)
    - N8N_URL / N8N_API_KEY (optional, must be set together)

    Notes:
        Tests can point at a specific env file via `SyncSettings(_env_file=path)`.
    """

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    config_path: Path = Field(
        default_factory=_default_config_path,
        validation_alias="N8N_SYNC_CONFIG_PATH",
        description="Path of the JSON file holding configured n8n instances",
    )
    request_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        validation_alias="N8N_REQUEST_TIMEOUT",
        description="Overall timeout for a single n8n API call",
    )
    instance: str = Field(
        default="",
        validation_alias="N8N_INSTANCE",
        description="Instance name to use instead of the file's current instance",
    )
    n8n_url: str = Field(
        default="",
        validation_alias="N8N_URL",
        description="n8n base URL; together with N8N_API_KEY bypasses the instance file",
    )
    n8n_api_key: str = Field(
        default="",
        validation_alias="N8N_API_KEY",
        description="n8n API key used with N8N_URL",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _require_url_and_key_together(self) -> SyncSettings:
        if bool(self.n8n_url.strip()) != bool(self.n8n_api_key.strip()):
            raise ValueError("N8N_URL and N8N_API_KEY must be set together")
        return self

    @property
    def env_instance(self) -> InstanceConfig | None:
        """Instance described directly by the environment, if any."""

        if not self.n8n_url.strip():
            return None
        return InstanceConfig(name=ENV_INSTANCE_NAME, url=self.n8n_url, api_key=self.n8n_api_key)


class InstanceConfig(BaseModel):
    """Connection details for one n8n instance."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str
    api_key: str = Field(alias="apiKey")

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        url = value.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return url


class CliConfig(BaseModel):
    """Contents of the instance file."""

    model_config = ConfigDict(populate_by_name=True)

    current_instance: str = Field(default="", alias="currentInstance")
    instances: dict[str, InstanceConfig] = Field(default_factory=dict)


class ConfigStore:
    """JSON-file backed store for configured instances.

    The file holds API keys, so it is written owner-only.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> CliConfig:
        if not self._path.exists():
            return CliConfig()

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"failed to read config {self._path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"failed to parse config {self._path}: {e}") from e

        if raw is None:
            return CliConfig()
        try:
            return CliConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"failed to parse config {self._path}: {e}") from e

    def save(self, config: CliConfig) -> None:
        self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        payload = config.model_dump(mode="json", by_alias=True)
        self._path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        os.chmod(self._path, 0o600)

    def add_instance(self, instance: InstanceConfig, *, make_current: bool = False) -> CliConfig:
        """Add or replace an instance.

        The first configured instance always becomes current.
        """

        config = self.load()
        config.instances[instance.name] = instance
        if make_current or len(config.instances) == 1:
            config.current_instance = instance.name
        self.save(config)
        logger.info("Instance configured", extra={"instance": instance.name})
        return config

    def use_instance(self, name: str) -> CliConfig:
        config = self.load()
        if name not in config.instances:
            raise ConfigError(f"instance '{name}' not found")
        config.current_instance = name
        self.save(config)
        return config

    def remove_instance(self, name: str) -> CliConfig:
        """Remove an instance; if it was current, the first remaining one takes over."""

        config = self.load()
        if name not in config.instances:
            raise ConfigError(f"instance '{name}' not found")
        del config.instances[name]
        if config.current_instance == name:
            config.current_instance = next(iter(config.instances), "")
        self.save(config)
        return config


def resolve_instance(
    settings: SyncSettings, store: ConfigStore, *, name: str | None = None
) -> InstanceConfig:
    """Pick the instance a command should talk to.

    Order: N8N_URL/N8N_API_KEY, then an explicit name (`--instance` or
    N8N_INSTANCE), then the instance file's current instance.
    """

    env_instance = settings.env_instance
    if env_instance is not None:
        return env_instance

    config = store.load()
    if not config.instances:
        raise ConfigError("not configured. Run 'n8n-sync config init' first")

    selected = (name or "").strip() or settings.instance.strip() or config.current_instance
    if not selected:
        raise ConfigError("no instance selected. Run 'n8n-sync config use <name>'")

    instance = config.instances.get(selected)
    if instance is None:
        raise ConfigError(f"instance '{selected}' not found")
    return instance
