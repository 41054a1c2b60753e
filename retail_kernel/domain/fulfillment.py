"""
Fulfillment state machine -- which order status changes are allowed.

Responsibility:
    Pure transition rules for the order lifecycle.  The service layer asks
    ``decide_transition`` what a status change means before writing it.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Pre-fulfillment statuses (intake, pending, in_process, urgent) may move
      freely among themselves and to completed.
    - completed is terminal.  completed -> completed is an idempotent no-op;
      completed -> anything else is rejected.
    - Completion consumes stock that was already reserved at sale time.  It
      never decrements a stock cell a second time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from retail_kernel.domain.values import OrderStatus

PRE_FULFILLMENT: frozenset[OrderStatus] = frozenset({
    OrderStatus.INTAKE,
    OrderStatus.PENDING,
    OrderStatus.IN_PROCESS,
    OrderStatus.URGENT,
})

VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    **{
        status: (PRE_FULFILLMENT - {status}) | {OrderStatus.COMPLETED}
        for status in PRE_FULFILLMENT
    },
    # Terminal
    OrderStatus.COMPLETED: frozenset(),
}


class TransitionEffect(str, Enum):
    """What writing the target status implies."""

    NO_OP = "no_op"
    STATUS_ONLY = "status_only"
    CONSUME_STOCK = "consume_stock"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TransitionDecision:
    from_status: OrderStatus
    to_status: OrderStatus
    effect: TransitionEffect

    @property
    def allowed(self) -> bool:
        return self.effect is not TransitionEffect.REJECTED


def decide_transition(current: OrderStatus | str, target: OrderStatus | str) -> TransitionDecision:
    """
    Classify a requested status change.

    Returns a decision; never raises for a disallowed transition (the
    caller turns REJECTED into InvalidStatusTransitionError).
    """
    current = OrderStatus(current)
    target = OrderStatus(target)

    if current == target:
        return TransitionDecision(current, target, TransitionEffect.NO_OP)
    if target not in VALID_TRANSITIONS[current]:
        return TransitionDecision(current, target, TransitionEffect.REJECTED)
    if target is OrderStatus.COMPLETED:
        return TransitionDecision(current, target, TransitionEffect.CONSUME_STOCK)
    return TransitionDecision(current, target, TransitionEffect.STATUS_ONLY)


def holds_reserved_stock(status: OrderStatus | str) -> bool:
    """True while the order's reservations can still be returned to stock."""
    return OrderStatus(status) in PRE_FULFILLMENT


def is_editable(status: OrderStatus | str) -> bool:
    return OrderStatus(status) in PRE_FULFILLMENT
