"""
Typed exception hierarchy for the retail kernel.

===============================================================================
HOW ERRORS FLOW
===============================================================================

Exceptions are raised INSIDE an atomic unit to abort it.  The atomic
executor (``retail_kernel.db.atomic``) rolls the unit back and re-raises;
the protocol services (checkout, line edit, fulfillment, inventory
administration) catch the typed errors and turn them into result DTOs
carrying ``error_code`` and structured detail.  Callers of the protocol
therefore branch on a status enum, never on exception messages.

Every class carries a ``code`` class attribute (machine-readable, stable)
and stores its context as attributes so that the structured log formatter
and result DTOs can surface it without parsing strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RetailKernelError (base)
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- WouldGoNegativeError
    |   +-- StockCellNotFoundError
    |   +-- DuplicateStockCellError
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidPaymentAmountError
    |   +-- InvalidOrderRequestError
    |
    +-- NotFoundError
    |
    +-- OrderStateError
    |   +-- InvalidStatusTransitionError
    |   +-- OrderLockedError
    |
    +-- AuthorizationError
    |
    +-- ConcurrencyError
        +-- ConcurrencyConflictError
        +-- TransientFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                     | When Raised
--------------|--------------------------|------------------------------------------
Stock         | INSUFFICIENT_STOCK       | reserve() asked for more than available
              | WOULD_GO_NEGATIVE        | adjust() would leave a negative count
              | STOCK_CELL_NOT_FOUND     | product/color/size has no stock cell
              | DUPLICATE_STOCK_CELL     | size already defined for the color
--------------|--------------------------|------------------------------------------
Validation    | INVALID_QUANTITY         | quantity not a positive integer
              | INVALID_PAYMENT_AMOUNT   | part payment outside (0, total)
              | INVALID_ORDER_REQUEST    | empty cart, negative price, bad index
--------------|--------------------------|------------------------------------------
Lookup        | NOT_FOUND                | product/order/customer id unknown
--------------|--------------------------|------------------------------------------
Order state   | INVALID_TRANSITION       | status change not allowed
              | ORDER_LOCKED             | edit attempted on a completed order
--------------|--------------------------|------------------------------------------
Authorization | NOT_AUTHORIZED           | caller lacks the required permission
--------------|--------------------------|------------------------------------------
Concurrency   | CONCURRENCY_CONFLICT     | store reported a write conflict
              | TRANSIENT_FAILURE        | retries exhausted / store unavailable
"""


class RetailKernelError(Exception):
    """
    Base exception for all retail kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "RETAIL_KERNEL_ERROR"

    def detail(self) -> dict:
        """Public attributes of the error, for result DTOs and log records."""
        return {key: value for key, value in vars(self).items() if not key.startswith("_")}


# Stock-related exceptions


class StockError(RetailKernelError):
    """Base exception for stock ledger errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """A reservation asked for more units than the cell holds."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        color: str,
        size: str,
        requested: int,
        available: int,
        line_index: int | None = None,
    ):
        self.product_id = product_id
        self.color = color
        self.size = size
        self.requested = requested
        self.available = available
        self.line_index = line_index
        super().__init__(
            f"Insufficient stock for {product_id} {color}/{size}: "
            f"requested={requested}, available={available}"
        )


class WouldGoNegativeError(StockError):
    """A manual adjustment would leave the cell below zero."""

    code: str = "WOULD_GO_NEGATIVE"

    def __init__(
        self,
        product_id: str,
        color: str,
        size: str,
        delta: int,
        available: int,
    ):
        self.product_id = product_id
        self.color = color
        self.size = size
        self.delta = delta
        self.available = available
        super().__init__(
            f"Adjustment of {delta} on {product_id} {color}/{size} would go "
            f"negative (available={available})"
        )


class StockCellNotFoundError(StockError):
    """No stock cell exists for the product/color/size binding."""

    code: str = "STOCK_CELL_NOT_FOUND"

    def __init__(
        self,
        product_id: str,
        color: str,
        size: str,
        line_index: int | None = None,
    ):
        self.product_id = product_id
        self.color = color
        self.size = size
        self.line_index = line_index
        super().__init__(f"Stock cell not found: {product_id} {color}/{size}")


class DuplicateStockCellError(StockError):
    """The size is already defined for this color variant."""

    code: str = "DUPLICATE_STOCK_CELL"

    def __init__(self, product_id: str, color: str, size: str):
        self.product_id = product_id
        self.color = color
        self.size = size
        super().__init__(
            f"Stock cell already defined: {product_id} {color}/{size}"
        )


# Input validation exceptions


class ValidationError(RetailKernelError):
    """Base exception for request validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, line_index: int | None = None):
        self.quantity = quantity
        self.line_index = line_index
        where = f" on line {line_index}" if line_index is not None else ""
        super().__init__(f"Invalid quantity{where}: {quantity!r}")


class InvalidPaymentAmountError(ValidationError):
    """Part payment amount is outside the open interval (0, total)."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: object, total: object):
        self.amount = amount
        self.total = total
        super().__init__(
            f"Part payment amount must be > 0 and < total {total}: got {amount}"
        )


class InvalidOrderRequestError(ValidationError):
    """The order request is structurally invalid."""

    code: str = "INVALID_ORDER_REQUEST"

    def __init__(self, reason: str, line_index: int | None = None):
        self.reason = reason
        self.line_index = line_index
        super().__init__(reason)


# Lookup exceptions


class NotFoundError(RetailKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_kind: str, entity_id: str):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind} not found: {entity_id}")


# Order state exceptions


class OrderStateError(RetailKernelError):
    """Base exception for order lifecycle errors."""

    code: str = "ORDER_STATE_ERROR"


class InvalidStatusTransitionError(OrderStateError):
    """The requested status change is not allowed."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, order_id: str, from_status: str, to_status: str):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Order {order_id} cannot move from {from_status} to {to_status}"
        )


class OrderLockedError(OrderStateError):
    """The order can no longer be edited."""

    code: str = "ORDER_LOCKED"

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status} and cannot be edited")


# Authorization


class AuthorizationError(RetailKernelError):
    """The caller lacks the permission required for the action."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, permission: str, actor_id: str | None = None):
        self.permission = permission
        self.actor_id = actor_id
        super().__init__(f"Permission '{permission}' required")


# Concurrency-related exceptions


class ConcurrencyError(RetailKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """The store rejected a write because of a concurrent modification."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}"
        )


class TransientFailureError(ConcurrencyError):
    """Retries exhausted or the store is unavailable; the caller may try again."""

    code: str = "TRANSIENT_FAILURE"

    def __init__(self, unit_name: str, attempts: int, last_error: str | None = None):
        self.unit_name = unit_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Atomic unit '{unit_name}' failed after {attempts} attempt(s): "
            f"{last_error or 'unknown error'}"
        )
