"""
RetailConfig schema.

Frozen dataclasses that the loader builds from YAML.  Defaults here match
``defaults.yaml`` so a partial file only needs to name what it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///retail_kernel.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    sqlite_busy_timeout: float = 30.0


@dataclass(frozen=True)
class AtomicConfig:
    """Retry budget for atomic units."""

    max_attempts: int = 5
    backoff_seconds: float = 0.05


@dataclass(frozen=True)
class InvoiceConfig:
    start_number: int = 1
    display_width: int = 5
    counter_name: str = "invoice"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetailConfig:
    """
    Complete runtime configuration.

    ``checksum`` identifies the source document (SHA-256 of its canonical
    JSON form) before environment overrides are applied.
    """

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    atomic: AtomicConfig = field(default_factory=AtomicConfig)
    invoice: InvoiceConfig = field(default_factory=InvoiceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: str | None = None
    checksum: str = ""
