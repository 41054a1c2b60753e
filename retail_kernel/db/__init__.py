"""Database layer - engine, base classes, and the atomic-unit executor."""

from retail_kernel.db.atomic import RetryPolicy, is_retryable, run_atomic
from retail_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from retail_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_tables",
    "run_atomic",
    "RetryPolicy",
    "is_retryable",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
