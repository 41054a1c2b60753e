"""
Config -> Kernel Bridges.

Functions that turn a RetailConfig into kernel objects.  They live here
because the kernel must never import retail_config.

Usage:
    from retail_config import get_active_config
    from retail_config.bridges import init_engine, build_services

    config = get_active_config()
    init_engine(config)
    services = build_services(config)
    services.checkout.checkout(request)
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from retail_config.schema import RetailConfig
from retail_kernel.db.atomic import RetryPolicy
from retail_kernel.db.engine import get_session_factory, init_engine_from_url
from retail_kernel.domain.clock import Clock
from retail_kernel.logging_config import configure_logging
from retail_kernel.services.fulfillment_service import FulfillmentService
from retail_kernel.services.inventory_service import InventoryService
from retail_kernel.services.order_editor import OrderEditor
from retail_kernel.services.order_transaction import OrderTransactionService
from retail_kernel.services.receipt_dispatcher import (
    DocumentStore,
    ReceiptDispatcher,
    ReceiptNotifier,
    ReceiptRenderer,
)


def build_retry_policy(config: RetailConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.atomic.max_attempts,
        backoff_seconds=config.atomic.backoff_seconds,
    )


def init_engine(config: RetailConfig) -> Engine:
    """Configure logging at the configured level, then create the engine."""
    configure_logging(level=config.logging.level)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )


@dataclass(frozen=True)
class RetailServices:
    """The protocol services, wired to one session factory and policy."""

    checkout: OrderTransactionService
    editor: OrderEditor
    fulfillment: FulfillmentService
    inventory: InventoryService


def build_services(
    config: RetailConfig,
    clock: Clock | None = None,
    session_factory=None,
    renderer: ReceiptRenderer | None = None,
    store: DocumentStore | None = None,
    notifier: ReceiptNotifier | None = None,
) -> RetailServices:
    """
    Wire the protocol services from configuration.

    ``session_factory`` defaults to the engine module's factory, so
    ``init_engine`` must have run first when it is omitted.
    """
    factory = session_factory or get_session_factory()
    policy = build_retry_policy(config)
    dispatcher = ReceiptDispatcher(
        renderer=renderer,
        store=store,
        notifier=notifier,
        invoice_width=config.invoice.display_width,
    )
    return RetailServices(
        checkout=OrderTransactionService(
            session_factory=factory,
            clock=clock,
            policy=policy,
            dispatcher=dispatcher,
            invoice_start_number=config.invoice.start_number,
            invoice_counter=config.invoice.counter_name,
        ),
        editor=OrderEditor(session_factory=factory, clock=clock, policy=policy),
        fulfillment=FulfillmentService(session_factory=factory, clock=clock, policy=policy),
        inventory=InventoryService(session_factory=factory, clock=clock, policy=policy),
    )
