"""
Configuration Loader (``retail_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``retail_config.schema`` dataclasses.  Runtime callers go through
``retail_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown sections or keys raise ``ValueError``; a typo never silently
  falls back to a default.
* Numeric bounds are checked at load time (``max_attempts >= 1``,
  ``start_number >= 1``, ...).
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  source document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from retail_config.schema import (
    AtomicConfig,
    DatabaseConfig,
    InvoiceConfig,
    LoggingConfig,
    RetailConfig,
)

ENV_DATABASE_URL = "RETAIL_DATABASE_URL"
ENV_DATABASE_URL_FALLBACK = "DATABASE_URL"
ENV_LOG_LEVEL = "RETAIL_LOG_LEVEL"

_SECTIONS = {
    "database": DatabaseConfig,
    "atomic": AtomicConfig,
    "invoice": InvoiceConfig,
    "logging": LoggingConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _parse_section(name: str, data: Any, cls: type) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"Section '{name}' must be a mapping")
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(unknown)}")

    defaults = cls()
    values: dict[str, Any] = {}
    for key, value in data.items():
        expected = type(getattr(defaults, key))
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ValueError(
                f"'{name}.{key}' must be {expected.__name__}, got {value!r}"
            )
        values[key] = value
    return cls(**values)


def parse_database(data: Any) -> DatabaseConfig:
    config = _parse_section("database", data, DatabaseConfig)
    if not config.url:
        raise ValueError("'database.url' must not be empty")
    if config.pool_size < 1 or config.max_overflow < 0:
        raise ValueError("'database.pool_size' must be >= 1 and 'max_overflow' >= 0")
    return config


def parse_atomic(data: Any) -> AtomicConfig:
    config = _parse_section("atomic", data, AtomicConfig)
    if config.max_attempts < 1:
        raise ValueError(f"'atomic.max_attempts' must be >= 1, got {config.max_attempts}")
    if config.backoff_seconds < 0:
        raise ValueError("'atomic.backoff_seconds' must be >= 0")
    return config


def parse_invoice(data: Any) -> InvoiceConfig:
    config = _parse_section("invoice", data, InvoiceConfig)
    if config.start_number < 1:
        raise ValueError(f"'invoice.start_number' must be >= 1, got {config.start_number}")
    if config.display_width < 1:
        raise ValueError("'invoice.display_width' must be >= 1")
    if not config.counter_name:
        raise ValueError("'invoice.counter_name' must not be empty")
    return config


def parse_logging(data: Any) -> LoggingConfig:
    config = _parse_section("logging", data, LoggingConfig)
    level = config.level.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"'logging.level' is not a logging level: {config.level!r}")
    return replace(config, level=level)


def parse_config(data: Mapping[str, Any], source: str | None = None) -> RetailConfig:
    """Parse a full configuration document."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")
    return RetailConfig(
        database=parse_database(data.get("database")),
        atomic=parse_atomic(data.get("atomic")),
        invoice=parse_invoice(data.get("invoice")),
        logging=parse_logging(data.get("logging")),
        source=source,
        checksum=compute_checksum(dict(data)),
    )


def load_config(path: Path) -> RetailConfig:
    return parse_config(load_yaml_file(path), source=str(path))


def apply_env_overrides(config: RetailConfig, environ: Mapping[str, str]) -> RetailConfig:
    """Return ``config`` with environment overrides applied."""
    url = environ.get(ENV_DATABASE_URL) or environ.get(ENV_DATABASE_URL_FALLBACK)
    if url:
        config = replace(config, database=replace(config.database, url=url))
    level = environ.get(ENV_LOG_LEVEL)
    if level:
        config = replace(config, logging=parse_logging({"level": level}))
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
