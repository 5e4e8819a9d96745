"""
Configuration for the pgbeam server and polling client.

Both read their defaults from the environment; command-line flags override
individual fields. validate() collects every problem instead of stopping at
the first one.
"""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional
from urllib.parse import urlsplit

DEFAULT_PORT = 2001
DEFAULT_ENDPOINT = f"http://localhost:{DEFAULT_PORT}/tx?table=event"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS = ("console", "json")


def _env_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _validate_logging(level: str, fmt: str) -> List[str]:
    errors = []
    if level.upper() not in LOG_LEVELS:
        errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {level}")
    if fmt not in LOG_FORMATS:
        errors.append(f"log_format must be one of {', '.join(LOG_FORMATS)}, got {fmt}")
    return errors


@dataclass
class ServerConfig:
    """HTTP server and connection pool settings"""
    database_url: str
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    pool_min_size: int = 1
    pool_max_size: int = 10
    acquire_timeout: float = 30.0
    upstream_timeout: Optional[float] = None
    log_level: str = "INFO"
    log_format: str = "console"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        env = os.environ if env is None else env
        return cls(
            database_url=env.get("DATABASE_URL", ""),
            host=env.get("PGBEAM_HOST", "0.0.0.0"),
            port=_env_int(env, "PGBEAM_PORT", DEFAULT_PORT),
            pool_min_size=_env_int(env, "PGBEAM_POOL_MIN_SIZE", 1),
            pool_max_size=_env_int(env, "PGBEAM_POOL_MAX_SIZE", 10),
            acquire_timeout=_env_float(env, "PGBEAM_ACQUIRE_TIMEOUT", 30.0),
            upstream_timeout=_env_float(env, "PGBEAM_UPSTREAM_TIMEOUT", None),
            log_level=env.get("PGBEAM_LOG_LEVEL", "INFO"),
            log_format=env.get("PGBEAM_LOG_FORMAT", "console"),
        )

    def validate(self) -> List[str]:
        """
        Validate configuration parameters.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.database_url:
            errors.append("database_url is required (set DATABASE_URL)")

        if not (1 <= self.port <= 65535):
            errors.append(f"Port must be 1-65535, got {self.port}")

        if self.pool_min_size < 0:
            errors.append(f"pool_min_size must be >= 0, got {self.pool_min_size}")

        if self.pool_max_size < max(1, self.pool_min_size):
            errors.append(
                f"pool_max_size must be >= max(1, pool_min_size), got {self.pool_max_size}"
            )

        if self.acquire_timeout <= 0:
            errors.append(f"acquire_timeout must be > 0, got {self.acquire_timeout}")

        if self.upstream_timeout is not None and self.upstream_timeout <= 0:
            errors.append(f"upstream_timeout must be > 0, got {self.upstream_timeout}")

        errors.extend(_validate_logging(self.log_level, self.log_format))
        return errors


@dataclass
class ClientConfig:
    """Polling client settings"""
    database_url: str
    endpoint: str = DEFAULT_ENDPOINT
    target_table: str = ""
    interval: float = 3.0
    log_level: str = "INFO"
    log_format: str = "console"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if env is None else env
        return cls(
            database_url=env.get("DATABASE_URL", ""),
            endpoint=env.get("PGBEAM_ENDPOINT", DEFAULT_ENDPOINT),
            target_table=env.get("PGBEAM_TARGET", ""),
            interval=_env_float(env, "PGBEAM_INTERVAL", 3.0),
            log_level=env.get("PGBEAM_LOG_LEVEL", "INFO"),
            log_format=env.get("PGBEAM_LOG_FORMAT", "console"),
        )

    def validate(self) -> List[str]:
        errors = []

        if not self.database_url:
            errors.append("database_url is required (set DATABASE_URL)")

        parts = urlsplit(self.endpoint)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            errors.append(f"endpoint must be an http(s) URL, got {self.endpoint!r}")

        if not self.target_table:
            errors.append("target_table is required (set PGBEAM_TARGET)")

        if self.interval < 0:
            errors.append(f"interval must be >= 0, got {self.interval}")

        errors.extend(_validate_logging(self.log_level, self.log_format))
        return errors


def ensure_valid(config) -> None:
    """Raise ValueError listing every problem in a ServerConfig/ClientConfig."""
    errors = config.validate()
    if errors:
        raise ValueError("invalid configuration: " + "; ".join(errors))
