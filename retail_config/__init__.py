"""
retail_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  It reads a YAML file (the packaged ``defaults.yaml`` unless a
    path is given), applies environment overrides and returns a frozen
    ``RetailConfig``.

Architecture position:
    Configuration sits above ``retail_kernel``.  The kernel never imports
    this package; ``retail_config.bridges`` turns a RetailConfig into kernel
    inputs (engine, retry policy, wired services).

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``ValueError`` -- unknown keys, wrong types or out-of-range values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from retail_config.loader import apply_env_overrides, compute_checksum, load_config
from retail_config.schema import (
    AtomicConfig,
    DatabaseConfig,
    InvoiceConfig,
    LoggingConfig,
    RetailConfig,
)

_logger = logging.getLogger("retail_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> RetailConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the packaged defaults.
        environ: Environment used for overrides.  Defaults to ``os.environ``.

    Returns:
        The frozen RetailConfig.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path)
    config = apply_env_overrides(config, os.environ if environ is None else environ)

    _logger.info(
        "RETAIL_CONFIG_LOADED",
        extra={
            "config_source": config.source,
            "checksum": config.checksum,
            "dialect": config.database.url.split(":", 1)[0],
            "max_attempts": config.atomic.max_attempts,
            "invoice_start_number": config.invoice.start_number,
        },
    )
    return config


__all__ = [
    "AtomicConfig",
    "DatabaseConfig",
    "DEFAULT_CONFIG_PATH",
    "InvoiceConfig",
    "LoggingConfig",
    "RetailConfig",
    "compute_checksum",
    "get_active_config",
]
