"""Pure domain core: value types, cart validation, stock delta planning, fulfillment rules."""

from retail_kernel.domain.cart import (
    CheckoutRequest,
    CustomerInfo,
    LineRequest,
    validate_checkout,
)
from retail_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from retail_kernel.domain.fulfillment import (
    VALID_TRANSITIONS,
    TransitionDecision,
    TransitionEffect,
    decide_transition,
)
from retail_kernel.domain.stock_delta import (
    MoveKind,
    StockMove,
    plan_line_edit,
    plan_order_release,
)
from retail_kernel.domain.values import (
    FinancialRecordType,
    MovementReason,
    OrderStatus,
    PaymentState,
    StockKey,
    format_invoice_number,
)

__all__ = [
    "CheckoutRequest",
    "Clock",
    "CustomerInfo",
    "DeterministicClock",
    "FinancialRecordType",
    "LineRequest",
    "MoveKind",
    "MovementReason",
    "OrderStatus",
    "PaymentState",
    "StockKey",
    "StockMove",
    "SystemClock",
    "TransitionDecision",
    "TransitionEffect",
    "VALID_TRANSITIONS",
    "decide_transition",
    "format_invoice_number",
    "plan_line_edit",
    "plan_order_release",
    "validate_checkout",
]
