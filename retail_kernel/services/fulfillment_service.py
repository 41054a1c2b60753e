"""
FulfillmentService -- order status changes, completion and deletion.

Responsibility:
    Applies the transition rules from ``retail_kernel.domain.fulfillment``
    to stored orders and keeps the mirrored FinancialRecord status in step.
    Deletion returns every unit the order still holds to stock and removes
    the order, its lines and its financial record in one unit.

Architecture position:
    Kernel > Services -- protocol service, owns the transaction boundary.

Invariants enforced:
    - completed is terminal; completing twice is a reported no-op.
    - Completion stamps ``stock_consumed_at`` once and never touches a
      stock cell.  The units were taken at sale time.
    - Deleting a pre-fulfillment order releases exactly its line
      quantities.  Deleting a completed order releases nothing.
    - Deletion requires the ``orders.delete`` permission.

Failure modes:
    Returned as FulfillmentResult statuses: INVALID_TRANSITION, NOT_FOUND,
    NOT_AUTHORIZED, TRANSIENT_FAILURE.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from retail_kernel.db.atomic import RetryPolicy, run_atomic
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.fulfillment import (
    TransitionEffect,
    decide_transition,
    holds_reserved_stock,
)
from retail_kernel.domain.stock_delta import StockMove, plan_order_release
from retail_kernel.domain.values import MovementReason, OrderStatus
from retail_kernel.exceptions import (
    AuthorizationError,
    InvalidStatusTransitionError,
    NotFoundError,
    RetailKernelError,
    TransientFailureError,
)
from retail_kernel.logging_config import LogContext, get_logger
from retail_kernel.models.financial_record import FinancialRecord
from retail_kernel.services.order_editor import load_order_for_update
from retail_kernel.services.stock_ledger import LedgerStatus, StockLedger

logger = get_logger("services.fulfillment")

DELETE_PERMISSION = "orders.delete"


@dataclass(frozen=True)
class Authorization:
    """Who is acting and what they may do."""

    actor_id: UUID
    permissions: frozenset[str] = frozenset()

    def allows(self, permission: str) -> bool:
        return permission in self.permissions

    def require(self, permission: str) -> None:
        if not self.allows(permission):
            raise AuthorizationError(permission, str(self.actor_id))


class FulfillmentStatus(str, Enum):
    APPLIED = "applied"
    NO_CHANGE = "no_change"
    ALREADY_COMPLETED = "already_completed"
    DELETED = "deleted"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"
    NOT_AUTHORIZED = "not_authorized"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class FulfillmentResult:
    status: FulfillmentStatus
    order_id: UUID
    from_status: OrderStatus | None = None
    to_status: OrderStatus | None = None
    released: tuple[StockMove, ...] = ()
    stock_consumed_at: datetime | None = None
    error_code: str | None = None
    message: str | None = None
    detail: dict[str, object] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status in (
            FulfillmentStatus.APPLIED,
            FulfillmentStatus.NO_CHANGE,
            FulfillmentStatus.ALREADY_COMPLETED,
            FulfillmentStatus.DELETED,
        )


_STATUS_FOR_ERROR: tuple[tuple[type[RetailKernelError], FulfillmentStatus], ...] = (
    (InvalidStatusTransitionError, FulfillmentStatus.INVALID_TRANSITION),
    (NotFoundError, FulfillmentStatus.NOT_FOUND),
    (AuthorizationError, FulfillmentStatus.NOT_AUTHORIZED),
    (TransientFailureError, FulfillmentStatus.TRANSIENT_FAILURE),
)


class FulfillmentService:
    """Order lifecycle operations.  Each public call is one atomic unit."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        order_id: UUID,
        target_status: OrderStatus | str,
        actor_id: UUID,
    ) -> FulfillmentResult:
        """
        Move an order to ``target_status``.

        A request for the current status is NO_CHANGE (ALREADY_COMPLETED
        when that status is completed).  Order and financial record change
        together.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor_id),
            order_id=str(order_id),
        ):
            try:
                target = OrderStatus(target_status)
            except ValueError:
                return FulfillmentResult(
                    FulfillmentStatus.INVALID_TRANSITION,
                    order_id,
                    error_code=InvalidStatusTransitionError.code,
                    message=f"Unknown order status: {target_status!r}",
                )
            try:
                result = run_atomic(
                    lambda session: self._transition_unit(
                        session, order_id, target, actor_id
                    ),
                    session_factory=self._session_factory,
                    policy=self._policy,
                    unit_name="order_transition",
                )
            except RetailKernelError as exc:
                return self._rejected(order_id, exc)

            logger.info(
                "order_transitioned",
                extra={
                    "status": result.status.value,
                    "from_status": result.from_status,
                    "to_status": result.to_status,
                },
            )
            return result

    def mark_completed(self, order_id: UUID, actor_id: UUID) -> FulfillmentResult:
        """Complete an order.  Idempotent: a second call reports ALREADY_COMPLETED."""
        return self.transition(order_id, OrderStatus.COMPLETED, actor_id)

    def bulk_complete(
        self,
        order_ids: Iterable[UUID],
        actor_id: UUID,
    ) -> tuple[FulfillmentResult, ...]:
        """Complete each order in its own unit; one failure does not stop the rest."""
        return tuple(self.mark_completed(order_id, actor_id) for order_id in order_ids)

    def _transition_unit(
        self,
        session: Session,
        order_id: UUID,
        target: OrderStatus,
        actor_id: UUID,
    ) -> FulfillmentResult:
        order = load_order_for_update(session, order_id)
        current = OrderStatus(order.status)
        decision = decide_transition(current, target)

        if decision.effect is TransitionEffect.REJECTED:
            raise InvalidStatusTransitionError(
                str(order_id), current.value, target.value
            )
        if decision.effect is TransitionEffect.NO_OP:
            status = (
                FulfillmentStatus.ALREADY_COMPLETED
                if current is OrderStatus.COMPLETED
                else FulfillmentStatus.NO_CHANGE
            )
            return FulfillmentResult(
                status, order_id, current, target,
                stock_consumed_at=order.stock_consumed_at,
            )

        now = self._clock.now()
        order.status = target.value
        if decision.effect is TransitionEffect.CONSUME_STOCK and order.stock_consumed_at is None:
            order.stock_consumed_at = now
        order.updated_at = now
        order.updated_by_id = actor_id

        record = session.get(FinancialRecord, order.id)
        if record is not None:
            record.status = target.value
            record.updated_by_id = actor_id
        session.flush()

        return FulfillmentResult(
            FulfillmentStatus.APPLIED, order_id, current, target,
            stock_consumed_at=order.stock_consumed_at,
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_order(
        self,
        order_id: UUID,
        authorization: Authorization,
    ) -> FulfillmentResult:
        """
        Delete an order, releasing whatever stock it still holds.

        Preconditions:
            ``authorization`` carries the ``orders.delete`` permission.

        Postconditions:
            DELETED: the order, its lines and its financial record are gone
                and every held unit is back in its cell.
            Otherwise: nothing changed.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(authorization.actor_id),
            order_id=str(order_id),
        ):
            try:
                authorization.require(DELETE_PERMISSION)
                result = run_atomic(
                    lambda session: self._delete_unit(
                        session, order_id, authorization.actor_id
                    ),
                    session_factory=self._session_factory,
                    policy=self._policy,
                    unit_name="order_delete",
                )
            except RetailKernelError as exc:
                return self._rejected(order_id, exc)

            logger.info(
                "order_deleted",
                extra={
                    "from_status": result.from_status,
                    "released_cells": len(result.released),
                },
            )
            return result

    def bulk_delete(
        self,
        order_ids: Iterable[UUID],
        authorization: Authorization,
    ) -> tuple[FulfillmentResult, ...]:
        return tuple(self.delete_order(order_id, authorization) for order_id in order_ids)

    def _delete_unit(
        self,
        session: Session,
        order_id: UUID,
        actor_id: UUID,
    ) -> FulfillmentResult:
        order = load_order_for_update(session, order_id)
        current = OrderStatus(order.status)

        released: tuple[StockMove, ...] = ()
        if holds_reserved_stock(current):
            released = plan_order_release(
                (line.stock_key, line.quantity) for line in order.lines
            )
            ledger = StockLedger(session, self._clock, actor_id)
            for move in released:
                key = move.key
                result = ledger.release(
                    key.product_id, key.color, key.size, move.quantity,
                    reason=MovementReason.ORDER_DELETION, order_id=order_id,
                )
                if result.status == LedgerStatus.NOT_FOUND:
                    # The cell was removed from the catalog; nothing to return it to
                    logger.warning(
                        "order_deletion_cell_missing",
                        extra={"cell": str(key), "quantity": move.quantity},
                    )

        record = session.get(FinancialRecord, order.id)
        if record is not None:
            session.delete(record)
        session.delete(order)
        session.flush()

        return FulfillmentResult(
            FulfillmentStatus.DELETED, order_id, current, None, released=released
        )

    @staticmethod
    def _rejected(order_id: UUID, exc: RetailKernelError) -> FulfillmentResult:
        status = next(
            (status for error_type, status in _STATUS_FOR_ERROR if isinstance(exc, error_type)),
            None,
        )
        if status is None:
            raise exc
        logger.warning(
            "fulfillment_rejected",
            extra={"status": status.value, "error_code": exc.code},
        )
        return FulfillmentResult(
            status,
            order_id,
            error_code=exc.code,
            message=str(exc),
            detail=exc.detail(),
        )
