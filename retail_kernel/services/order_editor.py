"""
OrderEditor -- change an order line and keep stock, totals and the
financial record in step.

Responsibility:
    Replaces one line of an existing order with new values.  The stock
    moves come from the pure planner
    (``retail_kernel.domain.stock_delta.plan_line_edit``) and are replayed
    against the StockLedger in the same unit as the line, order total and
    financial record updates.

Architecture position:
    Kernel > Services -- protocol service, owns the transaction boundary.

Invariants enforced:
    - Same binding: only the quantity difference is reserved or released.
    - Changed binding: the old quantity goes back to the old cell and the
      new quantity is reserved from the new cell.
    - If the reservation fails, nothing changes (the release of the old
      cell is rolled back with the rest of the unit).
    - Order.total_amount and FinancialRecord.amount equal the sum of the
      line totals after every edit.
    - Completed orders are not editable.

Concurrency:
    The order row is read with FOR UPDATE and every edit rewrites
    ``updated_at``, which bumps the optimistic ``version`` column.  Two
    concurrent edits of the same order cannot both commit against the same
    version; the loser is retried by the atomic executor from fresh state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.attributes import flag_modified

from retail_kernel.db.atomic import RetryPolicy, run_atomic
from retail_kernel.domain.cart import (
    LineRequest,
    to_money,
    validate_line,
    validate_part_payment,
)
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.fulfillment import is_editable
from retail_kernel.domain.stock_delta import MoveKind, StockMove, plan_line_edit
from retail_kernel.domain.values import MovementReason, PaymentState
from retail_kernel.exceptions import (
    InsufficientStockError,
    InvalidOrderRequestError,
    NotFoundError,
    OrderLockedError,
    RetailKernelError,
    StockCellNotFoundError,
    TransientFailureError,
    ValidationError,
)
from retail_kernel.logging_config import LogContext, get_logger
from retail_kernel.models.financial_record import FinancialRecord
from retail_kernel.models.order import Order
from retail_kernel.models.product import Product
from retail_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.order_editor")


class EditStatus(str, Enum):
    APPLIED = "applied"
    INVALID_REQUEST = "invalid_request"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"
    ORDER_LOCKED = "order_locked"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class EditResult:
    """Result of a line edit or payment update."""

    status: EditStatus
    order_id: UUID
    line_index: int | None = None
    moves: tuple[StockMove, ...] = ()
    new_total: Decimal | None = None
    error_code: str | None = None
    message: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == EditStatus.APPLIED


_STATUS_FOR_ERROR: tuple[tuple[type[RetailKernelError], EditStatus], ...] = (
    (InsufficientStockError, EditStatus.INSUFFICIENT_STOCK),
    (StockCellNotFoundError, EditStatus.NOT_FOUND),
    (NotFoundError, EditStatus.NOT_FOUND),
    (OrderLockedError, EditStatus.ORDER_LOCKED),
    (ValidationError, EditStatus.INVALID_REQUEST),
    (TransientFailureError, EditStatus.TRANSIENT_FAILURE),
)


def load_order_for_update(session: Session, order_id: UUID) -> Order:
    """Read an order with a row lock and fresh attributes, or raise NotFoundError."""
    order = session.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", str(order_id))
    return order


class OrderEditor:
    """Line edits and payment updates on committed orders."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy

    def edit_line(
        self,
        order_id: UUID,
        line_index: int,
        new_values: LineRequest,
        actor_id: UUID,
    ) -> EditResult:
        """
        Replace line ``line_index`` of ``order_id`` with ``new_values``.

        Postconditions:
            APPLIED: the line, the stock cells, the order total and the
                financial record reflect the new values.
            Otherwise: nothing changed.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id),
            order_id=str(order_id),
        ):
            t0 = time.monotonic()
            try:
                validate_line(new_values, line_index)
                moves, total = run_atomic(
                    lambda session: self._edit_unit(
                        session, order_id, line_index, new_values, actor_id
                    ),
                    session_factory=self._session_factory,
                    policy=self._policy,
                    unit_name="edit_line",
                )
            except RetailKernelError as exc:
                return self._rejected(order_id, line_index, exc)

            logger.info(
                "order_line_edited",
                extra={
                    "line_index": line_index,
                    "move_count": len(moves),
                    "new_total": total,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return EditResult(
                status=EditStatus.APPLIED,
                order_id=order_id,
                line_index=line_index,
                moves=moves,
                new_total=total,
            )

    def update_payment(
        self,
        order_id: UUID,
        payment_state: PaymentState | str,
        part_payment_amount: Decimal | None,
        actor_id: UUID,
    ) -> EditResult:
        """Change the payment selection and mirror it onto the financial record."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id),
            order_id=str(order_id),
        ):
            try:
                total = run_atomic(
                    lambda session: self._payment_unit(
                        session, order_id, payment_state, part_payment_amount, actor_id
                    ),
                    session_factory=self._session_factory,
                    policy=self._policy,
                    unit_name="update_payment",
                )
            except RetailKernelError as exc:
                return self._rejected(order_id, None, exc)

            logger.info(
                "order_payment_updated",
                extra={"payment_state": str(PaymentState(payment_state).value)},
            )
            return EditResult(EditStatus.APPLIED, order_id, new_total=total)

    def _edit_unit(
        self,
        session: Session,
        order_id: UUID,
        line_index: int,
        new_values: LineRequest,
        actor_id: UUID,
    ) -> tuple[tuple[StockMove, ...], Decimal]:
        order = load_order_for_update(session, order_id)
        if not is_editable(order.status):
            raise OrderLockedError(str(order_id), str(order.status))
        if not 0 <= line_index < len(order.lines):
            raise InvalidOrderRequestError(
                f"Order has {len(order.lines)} line(s); no line {line_index}",
                line_index,
            )

        line = order.lines[line_index]
        moves = plan_line_edit(
            line.stock_key, line.quantity, new_values.stock_key, new_values.quantity
        )

        ledger = StockLedger(session, self._clock, actor_id)
        for move in moves:
            key = move.key
            if move.kind is MoveKind.RELEASE:
                result = ledger.release(
                    key.product_id, key.color, key.size, move.quantity,
                    reason=MovementReason.EDIT_RELEASE, order_id=order_id,
                )
            else:
                result = ledger.reserve(
                    key.product_id, key.color, key.size, move.quantity,
                    reason=MovementReason.EDIT_RESERVATION, order_id=order_id,
                )
            result.raise_for_status(line_index)

        if new_values.product_id != line.product_id:
            product = session.get(Product, new_values.product_id)
            if product is None:
                raise NotFoundError("Product", str(new_values.product_id))
            line.product_name = product.name
        line.product_id = new_values.product_id
        line.color = new_values.color
        line.size = new_values.size
        line.quantity = new_values.quantity
        line.unit_price = to_money(new_values.unit_price)
        line.line_total = new_values.line_total
        line.updated_by_id = actor_id

        total = order.computed_total()
        self._touch(order, actor_id)
        order.total_amount = total

        record = session.get(FinancialRecord, order.id)
        if record is not None:
            record.amount = total
            record.updated_by_id = actor_id
        session.flush()
        return moves, total

    def _payment_unit(
        self,
        session: Session,
        order_id: UUID,
        payment_state: PaymentState | str,
        part_payment_amount: Decimal | None,
        actor_id: UUID,
    ) -> Decimal:
        order = load_order_for_update(session, order_id)
        amount = validate_part_payment(
            payment_state, part_payment_amount, order.total_amount
        )
        state = PaymentState(payment_state)

        order.payment_state = state.value
        order.part_payment_amount = amount
        self._touch(order, actor_id)

        record = session.get(FinancialRecord, order.id)
        if record is not None:
            record.payment_state = state.value
            record.part_payment_amount = amount
            record.updated_by_id = actor_id
        session.flush()
        return order.total_amount

    def _touch(self, order: Order, actor_id: UUID) -> None:
        # Force an UPDATE of the order row so the version check runs even
        # when the clock value did not move
        order.updated_at = self._clock.now()
        order.updated_by_id = actor_id
        flag_modified(order, "updated_at")

    @staticmethod
    def _rejected(
        order_id: UUID,
        line_index: int | None,
        exc: RetailKernelError,
    ) -> EditResult:
        status = next(
            (status for error_type, status in _STATUS_FOR_ERROR if isinstance(exc, error_type)),
            None,
        )
        if status is None:
            raise exc
        logger.warning(
            "order_edit_rejected",
            extra={"status": status.value, "error_code": exc.code},
        )
        return EditResult(
            status=status,
            order_id=order_id,
            line_index=line_index,
            error_code=exc.code,
            message=str(exc),
            detail=exc.detail(),
        )
