from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class SourceEnum(str, Enum):
    GPSD = "gpsd"
    SIMULATED = "simulated"


class RiderConfig(BaseModel):
    rider_id: str = Field("")

    @field_validator("rider_id")
    @classmethod
    def _validate_rider_id(cls, value: str) -> str:
        value = value.strip()
        if any(c.isspace() for c in value) or "/" in value:
            raise ValueError("rider_id must not contain whitespace or '/'")
        return value


class BackendConfig(BaseModel):
    base_url: str = Field("http://localhost:8000")
    location_path: str = Field("/riders/{rider_id}/location")
    timeout: float = Field(10.0, gt=0, le=120)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("location_path")
    @classmethod
    def _validate_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("location_path must start with '/'")
        if "{rider_id}" not in value:
            raise ValueError("location_path must contain {rider_id}")
        return value


class CredentialsConfig(BaseModel):
    token_env: str = Field("RIDER_TOKEN")
    token_file: Path = Field(Path("~/.config/ridertrack/rider_token"))

    @field_validator("token_file")
    @classmethod
    def _expand_token_file(cls, value: Path) -> Path:
        return value.expanduser()


class PositionConfig(BaseModel):
    """Position source configuration."""

    source: SourceEnum = Field(SourceEnum.GPSD)
    enabled: bool = Field(True)
    host: str = Field("localhost")
    port: int = Field(2947, ge=1, le=65535)
    socket_path: str | None = Field(None)
    connect_timeout: float = Field(5.0, gt=0)
    reconnect_delay: float = Field(5.0, ge=0.1)
    sim_lat: float = Field(41.0082, ge=-90, le=90)  # Istanbul default
    sim_lon: float = Field(28.9784, ge=-180, le=180)
    sim_interval: float = Field(1.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    base_dir: Path = Field(Path("logs"))
    to_file: bool = Field(False)
    file_name: str = Field("ridertrack.log")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        value = value.upper()
        if value not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return value

    @field_validator("base_dir")
    @classmethod
    def _expand_base_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @property
    def log_file(self) -> Path:
        return self.base_dir / self.file_name


class AgentConfig(BaseModel):
    rider: RiderConfig = Field(default_factory=RiderConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    position: PositionConfig = Field(default_factory=PositionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def location_url(self) -> str:
        return self.backend.base_url + self.backend.location_path.format(
            rider_id=self.rider.rider_id
        )


def load_config(path: Path) -> AgentConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config root must be a mapping: {path}")
    try:
        return AgentConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/ridertrack, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get("RIDERTRACK_CONFIG")
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/ridertrack/ridertrack.yml"), Path("configs/ridertrack.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Fallback to first candidate even if not exists to surface errors consistently
    return candidates[0] if candidates else Path("configs/ridertrack.yml").resolve()
