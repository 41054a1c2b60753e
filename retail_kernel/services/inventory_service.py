"""
InventoryService -- back-office stock administration, one unit per call.

Wraps the StockLedger and the CatalogService in ``run_atomic`` so that
manual adjustments and catalog edits commit on their own.  Ledger outcomes
come back as LedgerResult; callers branch on ``status`` exactly as the
checkout path does.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from retail_kernel.db.atomic import RetryPolicy, run_atomic
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.values import MovementReason
from retail_kernel.logging_config import get_logger
from retail_kernel.services.catalog_service import CatalogService
from retail_kernel.services.stock_ledger import LedgerResult, StockLedger

logger = get_logger("services.inventory")


class InventoryService:
    """Stock adjustments, manual reservations and catalog definition."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy

    def _run(self, fn, unit_name: str):
        return run_atomic(
            fn,
            session_factory=self._session_factory,
            policy=self._policy,
            unit_name=unit_name,
        )

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def adjust_stock(
        self,
        product_id: UUID,
        color: str,
        size: str,
        delta: int,
        actor_id: UUID,
    ) -> LedgerResult:
        """Receive (+) or write off (-) units.  WOULD_GO_NEGATIVE leaves the cell as is."""
        return self._run(
            lambda session: StockLedger(session, self._clock, actor_id).adjust(
                product_id, color, size, delta
            ),
            "adjust_stock",
        )

    def reserve_stock(
        self,
        product_id: UUID,
        color: str,
        size: str,
        qty: int,
        actor_id: UUID,
    ) -> LedgerResult:
        return self._run(
            lambda session: StockLedger(session, self._clock, actor_id).reserve(
                product_id, color, size, qty,
                reason=MovementReason.MANUAL_RESERVATION,
            ),
            "reserve_stock",
        )

    def release_stock(
        self,
        product_id: UUID,
        color: str,
        size: str,
        qty: int,
        actor_id: UUID,
    ) -> LedgerResult:
        return self._run(
            lambda session: StockLedger(session, self._clock, actor_id).release(
                product_id, color, size, qty,
                reason=MovementReason.MANUAL_RELEASE,
            ),
            "release_stock",
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def define_product(
        self,
        name: str,
        variants: Mapping[str, Mapping[str, tuple[int, int]]],
        actor_id: UUID,
        unit_price: Decimal | None = None,
        image_url: str | None = None,
    ) -> UUID:
        """
        Create a product with its colors and sizes in one unit.

        ``variants`` maps color -> {size: (initial_available, reorder_threshold)}.
        """

        def unit(session: Session) -> UUID:
            catalog = CatalogService(session, actor_id, self._clock)
            product = catalog.create_product(name, unit_price, image_url)
            for color, sizes in variants.items():
                catalog.define_variant(product.id, color, sizes)
            return product.id

        product_id = self._run(unit, "define_product")
        logger.info(
            "product_defined",
            extra={"product_id": str(product_id), "colors": list(variants)},
        )
        return product_id

    def define_variant(
        self,
        product_id: UUID,
        color: str,
        sizes: Mapping[str, tuple[int, int]],
        actor_id: UUID,
    ) -> None:
        self._run(
            lambda session: CatalogService(session, actor_id, self._clock).define_variant(
                product_id, color, sizes
            ),
            "define_variant",
        )

    def update_product_details(self, product_id: UUID, actor_id: UUID, **changes) -> None:
        self._run(
            lambda session: CatalogService(
                session, actor_id, self._clock
            ).update_product_details(product_id, **changes),
            "update_product_details",
        )

    def set_reorder_threshold(
        self,
        product_id: UUID,
        color: str,
        size: str,
        threshold: int,
        actor_id: UUID,
    ) -> None:
        self._run(
            lambda session: CatalogService(
                session, actor_id, self._clock
            ).set_reorder_threshold(product_id, color, size, threshold),
            "set_reorder_threshold",
        )
