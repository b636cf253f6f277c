"""Configuration for the package edit pipeline.

Settings are decoded from `configs/{dev,prod}.toml` into typed structs and
then overridden from the environment. The resulting `Config` is passed
explicitly to everything that needs it.
"""

from __future__ import annotations

import os
from pathlib import Path

import msgspec

from models.edits import MAX_ATTEMPTS
from utilities.errors import ConfigurationError

__all__ = (
    "CONFIG_DIR",
    "Config",
    "DatabaseConfig",
    "PipelineConfig",
    "SentryConfig",
    "StorageConfig",
    "decode",
    "load_config",
)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


class DatabaseConfig(msgspec.Struct, kw_only=True):
    dsn: str = ""
    min_pool_size: int = 1
    max_pool_size: int = 10


class StorageConfig(msgspec.Struct, kw_only=True):
    bucket: str = "packages"
    endpoint_url: str | None = None
    region: str = "auto"


class PipelineConfig(msgspec.Struct, kw_only=True):
    """Pipeline tuning.

    Attributes:
        max_attempts: Attempts after which an edit is abandoned.
        max_parallel_backups: Concurrent backups in the fan-out phase.
        poll_interval: Seconds between copy status checks.
        max_wait: Seconds to wait for a pending copy; unbounded if None.
        dry_run: Log what would happen without touching either store.
    """

    max_attempts: int = MAX_ATTEMPTS
    max_parallel_backups: int = 10
    poll_interval: float = 3.0
    max_wait: float | None = None
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_parallel_backups < 1:
            raise ValueError("max_parallel_backups must be at least 1")
        if self.poll_interval < 0:
            raise ValueError("poll_interval must not be negative")
        if self.max_wait is not None and self.max_wait < 0:
            raise ValueError("max_wait must not be negative")


class SentryConfig(msgspec.Struct, kw_only=True):
    dsn: str | None = None
    environment: str = "development"
    traces_sample_rate: float = 0.0


class Config(msgspec.Struct, kw_only=True):
    database: DatabaseConfig = msgspec.field(default_factory=DatabaseConfig)
    storage: StorageConfig = msgspec.field(default_factory=StorageConfig)
    pipeline: PipelineConfig = msgspec.field(default_factory=PipelineConfig)
    sentry: SentryConfig = msgspec.field(default_factory=SentryConfig)


def decode(data: bytes | str) -> Config:
    """Decode TOML configuration.

    Raises:
        ConfigurationError: If the TOML is malformed or has invalid values.
    """
    try:
        return msgspec.toml.decode(data, type=Config)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config: Config, environ: dict[str, str]) -> Config:
    if dsn := environ.get("DATABASE_DSN"):
        config.database.dsn = dsn
    if endpoint := environ.get("S3_ENDPOINT_URL"):
        config.storage.endpoint_url = endpoint
    if bucket := environ.get("S3_BUCKET_NAME"):
        config.storage.bucket = bucket
    if region := environ.get("S3_REGION"):
        config.storage.region = region
    if sentry_dsn := environ.get("SENTRY_DSN"):
        config.sentry.dsn = sentry_dsn
    return config


def load_config(path: Path | str | None = None, environ: dict[str, str] | None = None) -> Config:
    """Load configuration from a TOML file plus environment overrides.

    Args:
        path: Config file; defaults to `configs/prod.toml` when
            `APP_ENVIRONMENT=production`, otherwise `configs/dev.toml`.
        environ: Environment mapping; defaults to `os.environ`.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file is missing or invalid, or no database DSN is set.
    """
    environ = dict(os.environ) if environ is None else environ
    if path is None:
        name = "prod" if environ.get("APP_ENVIRONMENT") == "production" else "dev"
        path = CONFIG_DIR / f"{name}.toml"

    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}", path=str(path)) from e

    config = _apply_env_overrides(decode(raw), environ)
    if not config.database.dsn:
        raise ConfigurationError("No database DSN configured; set database.dsn or DATABASE_DSN", path=str(path))
    return config
