"""
StockLedger -- atomic reserve / release / adjust of stock cells.

Responsibility:
    The only writer of ``StockCell.available``.  Every mutation is a single
    conditional UPDATE, so the check and the write cannot interleave with a
    concurrent session:

        UPDATE stock_cells
           SET available = available - :qty
         WHERE id = :cell AND available >= :qty

    A zero row count means the condition failed; the ledger then re-reads
    the cell to tell "not enough stock" from "cell vanished".

Architecture position:
    Kernel > Services -- flush-only, runs inside the caller's unit.

Invariants enforced:
    - available >= 0 after every committed unit.
    - A failed reserve or adjust has no side effect: no row changes and no
      StockMovement is written.
    - Every successful mutation appends exactly one StockMovement.

Failure modes:
    Returned as LedgerResult statuses, never raised:
    - NOT_FOUND: no product/color/size binding.
    - INSUFFICIENT_STOCK: reserve asked for more than available.
    - WOULD_GO_NEGATIVE: adjust would take the cell below zero.
    Raised before touching the store:
    - InvalidQuantityError: qty not a positive int, or delta zero/non-int.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from retail_kernel.domain.cart import validate_quantity
from retail_kernel.domain.clock import Clock
from retail_kernel.domain.stock_delta import reservation_order
from retail_kernel.domain.values import MovementReason, StockKey
from retail_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    StockCellNotFoundError,
    WouldGoNegativeError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.models.product import ColorVariant, StockCell
from retail_kernel.models.stock_movement import StockMovement
from retail_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")


class LedgerStatus(str, Enum):
    OK = "ok"
    INSUFFICIENT_STOCK = "insufficient_stock"
    WOULD_GO_NEGATIVE = "would_go_negative"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class LedgerResult:
    """
    Outcome of one ledger call.

    ``available`` is the balance after the change on OK, and the observed
    balance on INSUFFICIENT_STOCK / WOULD_GO_NEGATIVE.  It is None on
    NOT_FOUND.
    """

    status: LedgerStatus
    key: StockKey
    quantity: int
    available: int | None = None
    cell_id: UUID | None = None

    @property
    def is_success(self) -> bool:
        return self.status == LedgerStatus.OK

    def raise_for_status(self, line_index: int | None = None) -> None:
        """Turn a failed result into the matching typed exception."""
        key = self.key
        if self.status == LedgerStatus.OK:
            return
        if self.status == LedgerStatus.NOT_FOUND:
            raise StockCellNotFoundError(
                str(key.product_id), key.color, key.size, line_index
            )
        if self.status == LedgerStatus.INSUFFICIENT_STOCK:
            raise InsufficientStockError(
                str(key.product_id), key.color, key.size,
                self.quantity, self.available or 0, line_index,
            )
        raise WouldGoNegativeError(
            str(key.product_id), key.color, key.size,
            self.quantity, self.available or 0,
        )


@dataclass(frozen=True)
class BatchReservation:
    """Result of ``reserve_many``.  ``failed_index`` refers to the input order."""

    results: tuple[LedgerResult, ...]
    failed_index: int | None = None

    @property
    def is_success(self) -> bool:
        return self.failed_index is None

    @property
    def failure(self) -> LedgerResult | None:
        if self.failed_index is None:
            return None
        for result in self.results:
            if not result.is_success:
                return result
        return None


class StockLedger(BaseService):
    """
    Reserve, release and adjust stock cells inside the caller's transaction.

    Contract:
        The caller owns the transaction.  When a batch fails part-way, the
        earlier reservations of that batch are undone by rolling the unit
        back, not by the ledger.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        super().__init__(session, clock)
        self.actor_id = actor_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def locate(self, key: StockKey) -> UUID | None:
        """Return the stock cell id for ``key`` or None."""
        return self.session.execute(
            select(StockCell.id)
            .join(ColorVariant, StockCell.variant_id == ColorVariant.id)
            .where(
                ColorVariant.product_id == key.product_id,
                ColorVariant.color == key.color,
                StockCell.size == key.size,
            )
        ).scalar_one_or_none()

    def available(self, product_id: UUID, color: str, size: str) -> int | None:
        cell_id = self.locate(StockKey(product_id, color, size))
        if cell_id is None:
            return None
        return self._read_available(cell_id)

    def _read_available(self, cell_id: UUID) -> int | None:
        # populate_existing refreshes any StockCell already in the identity map
        cell = self.session.get(StockCell, cell_id, populate_existing=True)
        return cell.available if cell is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def reserve(
        self,
        product_id: UUID,
        color: str,
        size: str,
        qty: int,
        *,
        reason: MovementReason = MovementReason.SALE_RESERVATION,
        order_id: UUID | None = None,
    ) -> LedgerResult:
        """
        Atomically take ``qty`` units out of a cell.

        Postconditions:
            OK: available decreased by exactly ``qty``.
            Otherwise: the cell is unchanged.
        """
        validate_quantity(qty)
        key = StockKey(product_id, color, size)
        cell_id = self.locate(key)
        if cell_id is None:
            return self._not_found(key, qty, "reserve")

        rowcount = self.session.execute(
            update(StockCell)
            .where(StockCell.id == cell_id, StockCell.available >= qty)
            .values(available=StockCell.available - qty)
            .execution_options(synchronize_session=False)
        ).rowcount

        observed = self._read_available(cell_id)
        if rowcount == 0:
            if observed is None:
                return self._not_found(key, qty, "reserve")
            logger.info(
                "stock_reservation_rejected",
                extra={
                    "cell": str(key),
                    "requested": qty,
                    "available": observed,
                },
            )
            return LedgerResult(
                LedgerStatus.INSUFFICIENT_STOCK, key, qty, observed, cell_id
            )

        self._record(cell_id, key, -qty, reason, order_id, observed)
        logger.debug(
            "stock_reserved",
            extra={"cell": str(key), "quantity": qty, "balance_after": observed},
        )
        return LedgerResult(LedgerStatus.OK, key, qty, observed, cell_id)

    def release(
        self,
        product_id: UUID,
        color: str,
        size: str,
        qty: int,
        *,
        reason: MovementReason = MovementReason.ORDER_DELETION,
        order_id: UUID | None = None,
    ) -> LedgerResult:
        """Atomically return ``qty`` units to a cell.  Always OK for an existing cell."""
        validate_quantity(qty)
        key = StockKey(product_id, color, size)
        cell_id = self.locate(key)
        if cell_id is None:
            return self._not_found(key, qty, "release")

        rowcount = self.session.execute(
            update(StockCell)
            .where(StockCell.id == cell_id)
            .values(available=StockCell.available + qty)
            .execution_options(synchronize_session=False)
        ).rowcount
        if rowcount == 0:
            return self._not_found(key, qty, "release")

        observed = self._read_available(cell_id)
        self._record(cell_id, key, qty, reason, order_id, observed)
        logger.debug(
            "stock_released",
            extra={"cell": str(key), "quantity": qty, "balance_after": observed},
        )
        return LedgerResult(LedgerStatus.OK, key, qty, observed, cell_id)

    def adjust(
        self,
        product_id: UUID,
        color: str,
        size: str,
        delta: int,
        *,
        reason: MovementReason = MovementReason.ADJUSTMENT,
    ) -> LedgerResult:
        """
        Atomically add ``delta`` (positive or negative) to a cell.

        Returns WOULD_GO_NEGATIVE, with no change, when
        ``available + delta < 0``.
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise InvalidQuantityError(delta)
        key = StockKey(product_id, color, size)
        cell_id = self.locate(key)
        if cell_id is None:
            return self._not_found(key, delta, "adjust")

        rowcount = self.session.execute(
            update(StockCell)
            .where(StockCell.id == cell_id, StockCell.available + delta >= 0)
            .values(available=StockCell.available + delta)
            .execution_options(synchronize_session=False)
        ).rowcount

        observed = self._read_available(cell_id)
        if rowcount == 0:
            if observed is None:
                return self._not_found(key, delta, "adjust")
            logger.info(
                "stock_adjustment_rejected",
                extra={"cell": str(key), "delta": delta, "available": observed},
            )
            return LedgerResult(
                LedgerStatus.WOULD_GO_NEGATIVE, key, delta, observed, cell_id
            )

        self._record(cell_id, key, delta, reason, None, observed)
        logger.info(
            "stock_adjusted",
            extra={"cell": str(key), "delta": delta, "balance_after": observed},
        )
        return LedgerResult(LedgerStatus.OK, key, delta, observed, cell_id)

    def reserve_many(
        self,
        requests: Sequence[tuple[StockKey, int]],
        *,
        reason: MovementReason = MovementReason.SALE_RESERVATION,
        order_id: UUID | None = None,
    ) -> BatchReservation:
        """
        Reserve a batch of (key, qty) requests, stopping at the first failure.

        Cells are touched in sorted key order so concurrent batches that
        share cells acquire row locks in the same sequence.
        """
        keys = [key for key, _ in requests]
        results: list[LedgerResult] = []
        for index in reservation_order(keys):
            key, qty = requests[index]
            result = self.reserve(
                key.product_id, key.color, key.size, qty,
                reason=reason, order_id=order_id,
            )
            results.append(result)
            if not result.is_success:
                return BatchReservation(tuple(results), failed_index=index)
        return BatchReservation(tuple(results))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _not_found(self, key: StockKey, quantity: int, operation: str) -> LedgerResult:
        logger.info(
            "stock_cell_not_found",
            extra={"cell": str(key), "operation": operation},
        )
        return LedgerResult(LedgerStatus.NOT_FOUND, key, quantity)

    def _record(
        self,
        cell_id: UUID,
        key: StockKey,
        delta: int,
        reason: MovementReason,
        order_id: UUID | None,
        balance_after: int | None,
    ) -> None:
        self.session.add(
            StockMovement(
                cell_id=cell_id,
                product_id=key.product_id,
                color=key.color,
                size=key.size,
                delta=delta,
                reason=reason.value,
                order_id=order_id,
                balance_after=balance_after if balance_after is not None else 0,
                actor_id=self.actor_id,
                recorded_at=self.clock.now(),
            )
        )
        self.session.flush()
