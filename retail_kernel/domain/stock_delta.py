"""
Stock delta planning -- which reserve/release moves a business action needs.

Responsibility:
    Pure computation of the ledger moves implied by a line edit, an order
    deletion, or a checkout.  Services replay the returned moves against the
    StockLedger inside one atomic unit; this module never touches the store.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Same binding (product/color/size): only the quantity difference moves.
    - Changed binding: the old binding's full old quantity is released and
      the new binding's full new quantity is reserved.
    - A no-op edit plans zero moves.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from retail_kernel.domain.values import StockKey


class MoveKind(str, Enum):
    RESERVE = "reserve"
    RELEASE = "release"


@dataclass(frozen=True)
class StockMove:
    """One ledger call: reserve or release ``quantity`` units of ``key``."""

    kind: MoveKind
    key: StockKey
    quantity: int

    @property
    def signed_delta(self) -> int:
        """Effect on ``available``: reservations are negative."""
        return -self.quantity if self.kind is MoveKind.RESERVE else self.quantity


def plan_line_edit(
    old_key: StockKey,
    old_quantity: int,
    new_key: StockKey,
    new_quantity: int,
) -> tuple[StockMove, ...]:
    """
    Plan the moves for replacing one order line with new values.

    Releases are planned before reservations so that a quantity reduction
    on one binding is visible to a reservation on the same binding.
    """
    if old_key == new_key:
        delta = new_quantity - old_quantity
        if delta > 0:
            return (StockMove(MoveKind.RESERVE, new_key, delta),)
        if delta < 0:
            return (StockMove(MoveKind.RELEASE, old_key, -delta),)
        return ()

    return (
        StockMove(MoveKind.RELEASE, old_key, old_quantity),
        StockMove(MoveKind.RESERVE, new_key, new_quantity),
    )


def plan_order_release(lines: Iterable[tuple[StockKey, int]]) -> tuple[StockMove, ...]:
    """Release everything an order still holds, one move per cell."""
    totals: dict[StockKey, int] = {}
    for key, quantity in lines:
        totals[key] = totals.get(key, 0) + quantity
    return tuple(
        StockMove(MoveKind.RELEASE, key, quantity)
        for key, quantity in sorted(totals.items(), key=lambda kv: kv[0].sort_key())
        if quantity > 0
    )


def reservation_order(keys: Sequence[StockKey]) -> list[int]:
    """
    Indices of ``keys`` in the order their reservations should be applied.

    Cells are touched in a deterministic global order so two checkouts that
    share cells lock them in the same sequence.
    """
    return sorted(range(len(keys)), key=lambda i: (keys[i].sort_key(), i))


def net_effect(moves: Iterable[StockMove]) -> dict[StockKey, int]:
    """Signed change per cell if every move succeeds."""
    effect: dict[StockKey, int] = {}
    for move in moves:
        effect[move.key] = effect.get(move.key, 0) + move.signed_delta
    return {key: delta for key, delta in effect.items() if delta != 0}
