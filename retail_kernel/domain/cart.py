"""
Cart -- checkout request DTOs and their pure validation.

Responsibility:
    Describes what a point-of-sale session submits at checkout and rejects
    malformed requests BEFORE any transaction is opened: empty carts,
    non-positive quantities, negative prices, and part payments outside
    the open interval (0, total).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - InvalidOrderRequestError: empty cart, missing customer identity,
      negative or non-numeric unit price.
    - InvalidQuantityError: quantity is not a positive integer.
    - InvalidPaymentAmountError: part payment amount <= 0 or >= total.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from uuid import UUID

from retail_kernel.domain.values import (
    OrderStatus,
    PaymentState,
    StockKey,
    line_total,
)
from retail_kernel.exceptions import (
    InvalidOrderRequestError,
    InvalidPaymentAmountError,
    InvalidQuantityError,
)


@dataclass(frozen=True)
class CustomerInfo:
    """Contact fields captured at the till."""

    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""

    def normalized(self) -> CustomerInfo:
        return CustomerInfo(
            name=self.name.strip(),
            phone=self.phone.strip(),
            email=self.email.strip(),
            address=self.address.strip(),
        )

    @property
    def has_identity(self) -> bool:
        return bool(self.phone.strip() or self.email.strip() or self.name.strip())


@dataclass(frozen=True)
class LineRequest:
    """One cart line: which cell, how many, at what unit price."""

    product_id: UUID
    color: str
    size: str
    quantity: int
    unit_price: Decimal

    @property
    def stock_key(self) -> StockKey:
        return StockKey(self.product_id, self.color, self.size)

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, to_money(self.unit_price))


@dataclass(frozen=True)
class CheckoutRequest:
    """Everything needed to turn a cart into a committed order."""

    customer: CustomerInfo
    lines: tuple[LineRequest, ...]
    actor_id: UUID
    status: OrderStatus = OrderStatus.INTAKE
    payment_state: PaymentState = PaymentState.FULL_PAYMENT
    part_payment_amount: Decimal | None = None
    terminal_id: str | None = None

    @property
    def total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))


def to_money(value: object) -> Decimal:
    """Coerce ``value`` to Decimal.  Floats are refused (no binary money)."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidOrderRequestError(f"Monetary value must not be {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidOrderRequestError(f"Not a monetary value: {value!r}")
    if not amount.is_finite():
        raise InvalidOrderRequestError(f"Monetary value must be finite: {value!r}")
    return amount


def validate_quantity(quantity: object, line_index: int | None = None) -> int:
    """Return ``quantity`` if it is a positive int, else raise."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity, line_index)
    return quantity


def validate_line(line: LineRequest, line_index: int | None = None) -> None:
    validate_quantity(line.quantity, line_index)
    try:
        price = to_money(line.unit_price)
    except InvalidOrderRequestError as exc:
        raise InvalidOrderRequestError(exc.reason, line_index) from exc
    if price < 0:
        raise InvalidOrderRequestError(
            f"Unit price must not be negative: {price}", line_index
        )
    if not line.color or not line.size:
        raise InvalidOrderRequestError("Color and size are required", line_index)


def validate_part_payment(
    payment_state: PaymentState,
    part_payment_amount: object,
    total: Decimal,
) -> Decimal | None:
    """
    Check the payment selection against the order total.

    Returns the normalized part payment amount (None for full payment).
    """
    try:
        payment_state = PaymentState(payment_state)
    except ValueError:
        raise InvalidOrderRequestError(f"Unknown payment state: {payment_state!r}")
    if payment_state is PaymentState.FULL_PAYMENT:
        return None
    if part_payment_amount is None:
        raise InvalidPaymentAmountError(None, total)
    amount = to_money(part_payment_amount)
    if amount <= 0 or amount >= total:
        raise InvalidPaymentAmountError(amount, total)
    return amount


def validate_checkout(request: CheckoutRequest) -> Decimal:
    """
    Validate a checkout request.

    Preconditions: none (this is the guard).
    Postconditions: the request has at least one line, every line is valid,
        and the payment selection fits the total.

    Returns:
        The order total (sum of line totals).
    """
    if not request.lines:
        raise InvalidOrderRequestError("Cart is empty")
    if not request.customer.has_identity:
        raise InvalidOrderRequestError("Customer name, phone or email is required")
    try:
        OrderStatus(request.status)
    except ValueError:
        raise InvalidOrderRequestError(f"Unknown order status: {request.status!r}")
    for index, line in enumerate(request.lines):
        validate_line(line, index)
    total = request.total
    validate_part_payment(request.payment_state, request.part_payment_amount, total)
    return total
