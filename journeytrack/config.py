from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class SpeedUnit(str, Enum):
    MPS = "mps"
    KMH = "kmh"


class TrackingConfig(BaseModel):
    """Journey engine tuning."""

    noise_gate_km: float = Field(0.001, ge=0.0, le=1.0)  # strict > gate, 1 m
    speed_unit: SpeedUnit = Field(SpeedUnit.MPS)  # unit reported by the positioning source
    tick_interval_sec: float = Field(1.0, gt=0.0, le=60.0)


class GPSConfig(BaseModel):
    """GPS daemon configuration."""

    host: str = Field("localhost")
    port: int = Field(2947, ge=1, le=65535)
    timeout: float = Field(10.0, ge=1.0)
    reconnect_delay: float = Field(5.0, ge=0.0)
    max_reconnect_attempts: int = Field(3, ge=0)  # 0 = infinite
    mock_mode: bool = Field(False)  # Use mock GPS for simulation
    mock_lat: float = Field(52.2297, ge=-90, le=90)  # Warsaw default
    mock_lon: float = Field(21.0122, ge=-180, le=180)
    mock_speed_mps: float = Field(1.4, ge=0.0)


class StorageConfig(BaseModel):
    db_path: Path = Field(Path("data/journeys.db"))
    export_dir: Path = Field(Path("data/exports"))

    @field_validator("db_path", "export_dir")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return value.expanduser()


class IdentityConfig(BaseModel):
    user_id: str | None = None
    user_env: str = Field("JOURNEYTRACK_USER")


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    format: str = Field("%(asctime)s %(levelname)s %(name)s: %(message)s")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        name = value.upper()
        if name not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {value}")
        return name


class JourneyConfig(BaseModel):
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    gps: GPSConfig = Field(default_factory=GPSConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Path) -> JourneyConfig:
    with Path(path).expanduser().open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}
    try:
        return JourneyConfig.model_validate(raw)
    except ValidationError as exc:  # pragma: no cover - formatting
        raise ValueError(str(exc)) from exc


def resolve_config_path(cli_path: Path | None) -> Path:
    """Resolve config path by priority: CLI, env, /etc/journeytrack, repo configs."""
    candidates: list[Path] = []
    if cli_path:
        p = Path(cli_path).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    env = os.environ.get("JOURNEYTRACK_CONFIG")
    if env:
        p = Path(env).expanduser()
        if p.exists():
            return p.resolve()
        candidates.append(p)
    for p in [Path("/etc/journeytrack/journeytrack.yml"), Path("configs/journeytrack.yml")]:
        if p.exists():
            return p.resolve()
        candidates.append(p)
    # Surface the first candidate so callers report a consistent missing path
    return candidates[0] if candidates else Path("configs/journeytrack.yml").resolve()


def load_or_default(cli_path: Path | None) -> JourneyConfig:
    """Load the resolved config file, or defaults when none exists."""
    resolved = resolve_config_path(cli_path)
    if not resolved.exists():
        return JourneyConfig()
    return load_config(resolved)


_logging_configured = False


def setup_logging(cfg: LoggingConfig) -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(level=getattr(logging, cfg.level), format=cfg.format)
    _logging_configured = True
