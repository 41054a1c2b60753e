"""
OrderTransactionService -- checkout: cart to committed order in one unit.

Responsibility:
    Turns a validated CheckoutRequest into an Order, its lines, the
    mirrored FinancialRecord, the stock reservations and an invoice number,
    all committed together or not at all.  After the commit it hands the
    order to the receipt dispatcher.

Architecture position:
    Kernel > Services -- protocol service, owns the transaction boundary
    through ``run_atomic``.

Checkout flow:
    checkout(request)
      1. Validate the request (pure, no transaction opened on failure)
      2. run_atomic:
         a. Upsert the customer (CustomerDirectory)
         b. Reserve every line in cell-key order (StockLedger.reserve_many)
         c. Allocate the invoice number (InvoiceSequencer)
         d. Write Order + OrderLines + FinancialRecord
      3. Dispatch the receipt (failures logged, order stays committed)

Invariants enforced:
    - A failing line aborts the whole unit: no cell changes, no invoice
      number consumed, no order or financial record written.
    - FinancialRecord.amount == sum(line_total) == Order.total_amount.
    - The receipt is never produced for an uncommitted order.

Failure modes:
    Returned as CheckoutResult statuses:
    - INVALID_REQUEST: empty cart, bad quantity/price/payment amount.
    - INSUFFICIENT_STOCK / NOT_FOUND: with ``failed_line_index``.
    - TRANSIENT_FAILURE: store conflicts outlasted the retry budget.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from retail_kernel.db.atomic import RetryPolicy, run_atomic
from retail_kernel.domain.cart import CheckoutRequest, to_money, validate_checkout
from retail_kernel.domain.clock import Clock, SystemClock
from retail_kernel.domain.values import (
    FinancialRecordType,
    MovementReason,
    OrderStatus,
    PaymentState,
)
from retail_kernel.exceptions import (
    InsufficientStockError,
    NotFoundError,
    RetailKernelError,
    StockCellNotFoundError,
    TransientFailureError,
    ValidationError,
)
from retail_kernel.logging_config import LogContext, get_logger
from retail_kernel.models.financial_record import FinancialRecord
from retail_kernel.models.order import Order, OrderLine
from retail_kernel.models.product import Product
from retail_kernel.services.customer_directory import CustomerDirectory
from retail_kernel.services.invoice_sequencer import InvoiceSequencer
from retail_kernel.services.receipt_dispatcher import (
    DispatchOutcome,
    OrderPayload,
    PayloadLine,
    ReceiptDispatcher,
)
from retail_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.order_transaction")


class CheckoutStatus(str, Enum):
    """Status of a checkout."""

    COMMITTED = "committed"
    INVALID_REQUEST = "invalid_request"
    INSUFFICIENT_STOCK = "insufficient_stock"
    NOT_FOUND = "not_found"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class CheckoutResult:
    """Result of a checkout."""

    status: CheckoutStatus
    order_id: UUID | None = None
    invoice_number: int | None = None
    total: Decimal | None = None
    failed_line_index: int | None = None
    error_code: str | None = None
    message: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    receipt: DispatchOutcome | None = None

    @property
    def is_success(self) -> bool:
        return self.status == CheckoutStatus.COMMITTED


def build_payload(order: Order) -> OrderPayload:
    """Snapshot a flushed order into a session-independent receipt payload."""
    return OrderPayload(
        order_id=order.id,
        invoice_number=order.invoice_number,
        created_at=order.created_at,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        customer_address=order.customer_address,
        lines=tuple(
            PayloadLine(
                product_name=line.product_name,
                color=line.color,
                size=line.size,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in order.lines
        ),
        total=order.total_amount,
        status=OrderStatus(order.status).value,
        payment_state=PaymentState(order.payment_state).value,
        part_payment_amount=order.part_payment_amount,
    )


class OrderTransactionService:
    """
    Point-of-sale checkout.

    Contract:
        ``checkout`` never raises for business failures; it returns a
        CheckoutResult.  Unexpected exceptions propagate after rollback.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
        dispatcher: ReceiptDispatcher | None = None,
        invoice_start_number: int = 1,
        invoice_counter: str = InvoiceSequencer.DEFAULT_COUNTER,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._policy = policy
        self._dispatcher = dispatcher
        self._invoice_start_number = invoice_start_number
        self._invoice_counter = invoice_counter

    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """
        Commit a sale.

        Postconditions:
            COMMITTED: order, lines, financial record, reservations and the
                invoice number are durable.
            Otherwise: the store is exactly as before the call.
        """
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(request.actor_id),
            terminal_id=request.terminal_id,
        ):
            logger.info(
                "checkout_started",
                extra={"line_count": len(request.lines)},
            )
            t0 = time.monotonic()

            try:
                total = validate_checkout(request)
            except ValidationError as exc:
                return self._rejected(CheckoutStatus.INVALID_REQUEST, exc, t0)

            order_id = uuid4()
            with LogContext.bind(order_id=str(order_id)):
                try:
                    payload = run_atomic(
                        lambda session: self._checkout_unit(
                            session, request, order_id, total
                        ),
                        session_factory=self._session_factory,
                        policy=self._policy,
                        unit_name="checkout",
                    )
                except InsufficientStockError as exc:
                    return self._rejected(CheckoutStatus.INSUFFICIENT_STOCK, exc, t0)
                except (StockCellNotFoundError, NotFoundError) as exc:
                    return self._rejected(CheckoutStatus.NOT_FOUND, exc, t0)
                except ValidationError as exc:
                    return self._rejected(CheckoutStatus.INVALID_REQUEST, exc, t0)
                except TransientFailureError as exc:
                    return self._rejected(CheckoutStatus.TRANSIENT_FAILURE, exc, t0)

                with LogContext.bind(invoice_number=str(payload.invoice_number)):
                    duration_ms = round((time.monotonic() - t0) * 1000, 2)
                    logger.info(
                        "checkout_committed",
                        extra={
                            "total": payload.total,
                            "duration_ms": duration_ms,
                        },
                    )
                    receipt = (
                        self._dispatcher.dispatch(payload)
                        if self._dispatcher is not None
                        else None
                    )

            return CheckoutResult(
                status=CheckoutStatus.COMMITTED,
                order_id=order_id,
                invoice_number=payload.invoice_number,
                total=payload.total,
                receipt=receipt,
            )

    def _checkout_unit(
        self,
        session: Session,
        request: CheckoutRequest,
        order_id: UUID,
        total: Decimal,
    ) -> OrderPayload:
        customer_info = request.customer.normalized()
        customer = CustomerDirectory(session, request.actor_id).upsert(customer_info)

        ledger = StockLedger(session, self._clock, request.actor_id)
        batch = ledger.reserve_many(
            [(line.stock_key, line.quantity) for line in request.lines],
            reason=MovementReason.SALE_RESERVATION,
            order_id=order_id,
        )
        if not batch.is_success:
            batch.failure.raise_for_status(batch.failed_index)

        invoice_number = InvoiceSequencer(
            session,
            start_number=self._invoice_start_number,
            counter_name=self._invoice_counter,
        ).next_invoice_number()

        now = self._clock.now()
        status = OrderStatus(request.status)
        payment_state = PaymentState(request.payment_state)
        part_payment = (
            to_money(request.part_payment_amount)
            if payment_state is PaymentState.PART_PAYMENT
            else None
        )

        order = Order(
            id=order_id,
            customer_id=customer.id,
            customer_name=customer_info.name,
            customer_phone=customer_info.phone or None,
            customer_email=customer_info.email or None,
            customer_address=customer_info.address or None,
            status=status.value,
            payment_state=payment_state.value,
            part_payment_amount=part_payment,
            invoice_number=invoice_number,
            total_amount=total,
            terminal_id=request.terminal_id,
            created_at=now,
            updated_at=now,
            created_by_id=request.actor_id,
            # Born completed: the sale reservation is the consumption
            stock_consumed_at=now if status is OrderStatus.COMPLETED else None,
        )
        for position, line in enumerate(request.lines):
            order.lines.append(
                OrderLine(
                    position=position,
                    product_id=line.product_id,
                    product_name=self._product_name(session, line.product_id),
                    color=line.color,
                    size=line.size,
                    quantity=line.quantity,
                    unit_price=to_money(line.unit_price),
                    line_total=line.line_total,
                    created_by_id=request.actor_id,
                )
            )
        session.add(order)

        session.add(
            FinancialRecord(
                id=order_id,
                record_type=FinancialRecordType.INCOME.value,
                amount=total,
                status=status.value,
                payment_state=payment_state.value,
                part_payment_amount=part_payment,
                description=f"POS transaction for invoice #{invoice_number}",
                customer_name=customer_info.name or None,
                created_by_id=request.actor_id,
            )
        )
        session.flush()
        return build_payload(order)

    @staticmethod
    def _product_name(session: Session, product_id: UUID) -> str:
        product = session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))
        return product.name

    def _rejected(
        self,
        status: CheckoutStatus,
        exc: RetailKernelError,
        t0: float,
    ) -> CheckoutResult:
        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        line_index = getattr(exc, "line_index", None)
        logger.warning(
            "checkout_rejected",
            extra={
                "status": status.value,
                "error_code": exc.code,
                "failed_line_index": line_index,
                "duration_ms": duration_ms,
            },
        )
        return CheckoutResult(
            status=status,
            failed_line_index=line_index,
            error_code=exc.code,
            message=str(exc),
            detail=exc.detail(),
        )

