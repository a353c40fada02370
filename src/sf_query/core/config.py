"""
Configuration module for query client settings.

This module provides configuration loading and validation for the subgraph
endpoint, the data mode gate, page sizes and request rate limiting.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

ENV_PREFIX = "SF_QUERY_"


class ConfigValidationError(ValueError):
    """Raised when a configuration document is invalid."""


class DataMode(str, Enum):
    """Which backends the client may use."""

    SUBGRAPH_ONLY = "SUBGRAPH_ONLY"
    SUBGRAPH_WEB3 = "SUBGRAPH_WEB3"
    WEB3_ONLY = "WEB3_ONLY"  # ledger-only: indexed queries are forbidden


@dataclass
class RateLimitConfig:
    """Token bucket and retry settings for the subgraph host."""

    steady_rate: float = 10.0  # tokens per second
    burst: int = 20
    max_concurrency: int = 4
    max_retries: int = 3
    base_backoff: float = 1.0  # seconds
    max_backoff: float = 60.0  # seconds

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateLimitConfig":
        """Create RateLimitConfig from dictionary."""
        return cls(
            steady_rate=data.get("steady_rate", 10.0),
            burst=data.get("burst", 20),
            max_concurrency=data.get("max_concurrency", 4),
            max_retries=data.get("max_retries", 3),
            base_backoff=data.get("base_backoff", 1.0),
            max_backoff=data.get("max_backoff", 60.0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "steady_rate": self.steady_rate,
            "burst": self.burst,
            "max_concurrency": self.max_concurrency,
            "max_retries": self.max_retries,
            "base_backoff": self.base_backoff,
            "max_backoff": self.max_backoff,
        }


@dataclass
class QueryConfig:
    """Complete query client configuration."""

    subgraph_endpoint: str = ""
    data_mode: DataMode = DataMode.SUBGRAPH_ONLY
    request_timeout: float = 30.0  # seconds
    default_take: int = 100
    list_all_take: int = 999  # largest page the subgraph accepts per call
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueryConfig":
        """Create QueryConfig from dictionary."""
        return cls(
            subgraph_endpoint=data.get("subgraph_endpoint", ""),
            data_mode=DataMode(data.get("data_mode", DataMode.SUBGRAPH_ONLY.value)),
            request_timeout=data.get("request_timeout", 30.0),
            default_take=data.get("default_take", 100),
            list_all_take=data.get("list_all_take", 999),
            rate_limit=RateLimitConfig.from_dict(data.get("rate_limit") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "subgraph_endpoint": self.subgraph_endpoint,
            "data_mode": self.data_mode.value,
            "request_timeout": self.request_timeout,
            "default_take": self.default_take,
            "list_all_take": self.list_all_take,
            "rate_limit": self.rate_limit.to_dict(),
        }


def default_config_path() -> Path:
    return Path(__file__).parents[3] / "config" / "sf_query.yml"


def load_config(config_path: str | Path | None = None) -> QueryConfig:
    """
    Load query configuration from a YAML file and the environment.

    Priority (highest wins):
        1. Environment variables (SF_QUERY_ENDPOINT, SF_QUERY_DATA_MODE)
        2. YAML config file
        3. Defaults from QueryConfig

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Validated QueryConfig

    Raises:
        yaml.YAMLError: If config file is invalid YAML
        ConfigValidationError: If config validation fails
    """
    path = Path(config_path) if config_path is not None else default_config_path()

    data: Any = {}
    if path.exists():
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigValidationError("Config must be a dictionary")

    data = dict(data)
    if endpoint := os.environ.get(f"{ENV_PREFIX}ENDPOINT"):
        data["subgraph_endpoint"] = endpoint
    if mode := os.environ.get(f"{ENV_PREFIX}DATA_MODE"):
        data["data_mode"] = mode

    validate_config(data)
    return QueryConfig.from_dict(data)


def _positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_config(data: Any) -> None:
    """
    Validate a raw configuration dictionary.

    Args:
        data: Parsed configuration document

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ConfigValidationError("Config must be a dictionary")

    mode = data.get("data_mode", DataMode.SUBGRAPH_ONLY.value)
    try:
        mode = DataMode(mode)
    except ValueError:
        valid = ", ".join(m.value for m in DataMode)
        raise ConfigValidationError(f"data_mode must be one of {valid}, got {mode!r}")

    endpoint = data.get("subgraph_endpoint", "")
    if not isinstance(endpoint, str):
        raise ConfigValidationError("subgraph_endpoint must be a string")
    if mode is not DataMode.WEB3_ONLY and not endpoint:
        raise ConfigValidationError(f"subgraph_endpoint is required in {mode.value} mode")

    for key in ("request_timeout", "default_take", "list_all_take"):
        if key in data and not _positive(data[key]):
            raise ConfigValidationError(f"{key} must be a positive number")
    for key in ("default_take", "list_all_take"):
        if key in data and not isinstance(data[key], int):
            raise ConfigValidationError(f"{key} must be an integer")

    rate_limit = data.get("rate_limit")
    if rate_limit is None:
        return
    if not isinstance(rate_limit, dict):
        raise ConfigValidationError("rate_limit must be a dictionary")
    for key in ("steady_rate", "burst", "max_concurrency", "base_backoff", "max_backoff"):
        if key in rate_limit and not _positive(rate_limit[key]):
            raise ConfigValidationError(f"rate_limit.{key} must be a positive number")
    retries = rate_limit.get("max_retries", 0)
    if not isinstance(retries, int) or isinstance(retries, bool) or retries < 0:
        raise ConfigValidationError("rate_limit.max_retries must be a non-negative integer")
