"""
Configuration settings for the qos kernel.
Loads QOS_* environment variables and provides the tick tunables.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

StoreBackend = Literal["memory", "sqlite", "redis"]

DEFAULT_SQLITE_PATH = Path.home() / ".local" / "share" / "qos-kernel" / "kernel.db"


class KernelSettings(BaseSettings):
    """Kernel tunables; fixed for the lifetime of a process."""

    model_config = SettingsConfigDict(
        env_prefix="QOS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Reserve thresholds
    bucket_emergency: float = 1000
    bucket_floor: float = 2000
    bucket_ceiling: float = 9500
    bucket_max: float = 10000  # Host-side reserve cap, used by the simulated host only

    # Allowance shaping
    cpu_buffer: float = 130  # Headroom kept below the hard tick limit
    cpu_minimum: float = 0.50  # Fraction of baseline rate spent while reserve recovers
    cpu_adjust: float = 0.05  # Conservative shrink applied to the interpolated allowance
    cpu_global_boost: float = 60  # One-time bonus on the first tick after a fresh load

    # Fairness override
    minimum_programs: float = 0.3  # Minimum completed fraction per tick
    program_normalizing_burst: float = 2  # Allowance multiplier while catching up

    # Cadences (tick modulus)
    maintenance_interval: int = 7
    report_interval: int = 50
    reset_interval: int = 3000

    root_process_kind: str = "player"
    script_version: str = "dev"

    # Durable store
    store_backend: StoreBackend = "memory"
    sqlite_path: Path = DEFAULT_SQLITE_PATH
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_key_prefix: str = "qos:"

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_consistency(self) -> "KernelSettings":
        if not 0 <= self.bucket_emergency <= self.bucket_floor < self.bucket_ceiling:
            raise ValueError(
                "reserve thresholds must satisfy 0 <= bucket_emergency <= bucket_floor < bucket_ceiling"
            )
        if self.bucket_max < self.bucket_ceiling:
            raise ValueError("bucket_max must be >= bucket_ceiling")
        for name in ("cpu_minimum", "cpu_adjust", "minimum_programs"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be between 0 and 1")
        if self.cpu_buffer < 0 or self.cpu_global_boost < 0:
            raise ValueError("cpu_buffer and cpu_global_boost must be >= 0")
        if self.program_normalizing_burst < 1:
            raise ValueError("program_normalizing_burst must be >= 1")
        for name in ("maintenance_interval", "report_interval", "reset_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if not self.root_process_kind.strip():
            raise ValueError("root_process_kind must be non-empty")
        return self

    @property
    def bucket_range(self) -> float:
        return self.bucket_ceiling - self.bucket_floor


def load_settings(**overrides: Any) -> KernelSettings:
    """Build settings from env plus explicit overrides, raising ConfigError on bad values."""
    try:
        return KernelSettings(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid kernel settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> KernelSettings:
    return load_settings()


def settings_to_dict(settings: KernelSettings) -> dict[str, Any]:
    return settings.model_dump(mode="json")
