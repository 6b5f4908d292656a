"""App configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, field_validator, model_validator

from .cluster import Consistency, ConnectionConfig, RetryPolicyConfig, create_cluster_config
from .models import validate_identifier

CONFIG_FILE = Path.home() / ".config" / "songbook" / "config.toml"

_STRING_KEYS = ("keyspace", "table", "consistency", "log_level")
_INT_KEYS = ("port", "replication_factor", "max_retries")
_FLOAT_KEYS = ("min_backoff", "max_backoff")


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    hosts: list[str] = Field(default_factory=lambda: ["127.0.0.1"])
    port: int = Field(default=9042, ge=1, le=65535)
    keyspace: str = "go_demo1"
    table: str = "songs"
    consistency: str = "ONE"
    replication_factor: int = Field(default=1, ge=1)
    min_backoff: float = 1.0
    max_backoff: float = 10.0
    max_retries: int = 5
    log_level: str = "INFO"

    @field_validator("hosts")
    @classmethod
    def _check_hosts(cls, value: list[str]) -> list[str]:
        hosts = [host.strip() for host in value if host.strip()]
        if not hosts:
            raise ValueError("At least one host is required.")
        return hosts

    @field_validator("keyspace", "table")
    @classmethod
    def _check_names(cls, value: str) -> str:
        return validate_identifier(value)

    @field_validator("consistency")
    @classmethod
    def _check_consistency(cls, value: str) -> str:
        return Consistency.parse(value).value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{value}'.")
        return level

    @model_validator(mode="after")
    def _check_retry(self) -> AppConfig:
        self.retry_policy()
        return self

    @property
    def qualified_table(self) -> str:
        return f"{self.keyspace}.{self.table}"

    def retry_policy(self) -> RetryPolicyConfig:
        return RetryPolicyConfig(
            min_backoff=self.min_backoff,
            max_backoff=self.max_backoff,
            max_retries=self.max_retries,
        )

    def connection_config(self) -> ConnectionConfig:
        """Translate file settings into driver connection settings."""

        return create_cluster_config(
            self.consistency,
            self.port,
            *self.hosts,
            retry=self.retry_policy(),
        )

    def with_overrides(self, **updates: object) -> AppConfig:
        """Return a validated copy with the non-``None`` updates applied."""

        data = self.model_dump()
        data.update({key: value for key, value in updates.items() if value is not None})
        return AppConfig(**data)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()
    return AppConfig(**data)


def save_config(config: AppConfig, path: Path | None = None) -> None:
    """Persist configuration to disk."""

    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    hosts = ", ".join(f'"{host}"' for host in config.hosts)
    lines: list[str] = [
        f"hosts = [{hosts}]",
        f"port = {config.port}",
        f'keyspace = "{config.keyspace}"',
        f'table = "{config.table}"',
        f'consistency = "{config.consistency}"',
        f"replication_factor = {config.replication_factor}",
        f'log_level = "{config.log_level}"',
        "",
        "[retry]",
        f"min_backoff = {config.min_backoff}",
        f"max_backoff = {config.max_backoff}",
        f"max_retries = {config.max_retries}",
    ]
    target.write_text("\n".join(lines) + "\n")


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if not isinstance(raw, dict):
        return data
    hosts = raw.get("hosts")
    if isinstance(hosts, str):
        data["hosts"] = [hosts]
    elif isinstance(hosts, list):
        parsed_hosts = [host for host in hosts if isinstance(host, str)]
        if parsed_hosts:
            data["hosts"] = parsed_hosts
    for key in _STRING_KEYS:
        value = raw.get(key)
        if isinstance(value, str):
            data[key] = value
    for key in _INT_KEYS:
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            data[key] = value
    retry = raw.get("retry")
    if isinstance(retry, dict):
        for key in _FLOAT_KEYS:
            value = retry.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                data[key] = float(value)
        max_retries = retry.get("max_retries")
        if isinstance(max_retries, int) and not isinstance(max_retries, bool):
            data["max_retries"] = max_retries
    return data


__all__ = ["AppConfig", "CONFIG_FILE", "load_config", "save_config"]
