"""
Unit tests for stock move planning.

Verifies:
- Same binding moves only the quantity difference
- Changed binding releases the old quantity and reserves the new one
- No-op edits plan nothing
- Order release aggregates lines per cell
- Reservation order is deterministic
"""

from uuid import UUID

from retail_kernel.domain.stock_delta import (
    MoveKind,
    StockMove,
    net_effect,
    plan_line_edit,
    plan_order_release,
    reservation_order,
)
from retail_kernel.domain.values import StockKey

P1 = UUID("00000000-0000-0000-0000-000000000001")
P2 = UUID("00000000-0000-0000-0000-000000000002")

RED_M = StockKey(P1, "Red", "M")
RED_L = StockKey(P1, "Red", "L")
BLUE_M = StockKey(P2, "Blue", "M")


class TestPlanLineEdit:

    def test_quantity_increase_reserves_difference(self):
        assert plan_line_edit(RED_M, 2, RED_M, 5) == (
            StockMove(MoveKind.RESERVE, RED_M, 3),
        )

    def test_quantity_decrease_releases_difference(self):
        assert plan_line_edit(RED_M, 5, RED_M, 2) == (
            StockMove(MoveKind.RELEASE, RED_M, 3),
        )

    def test_no_op(self):
        assert plan_line_edit(RED_M, 2, RED_M, 2) == ()

    def test_binding_change_releases_old_then_reserves_new(self):
        moves = plan_line_edit(RED_M, 2, RED_L, 4)
        assert moves == (
            StockMove(MoveKind.RELEASE, RED_M, 2),
            StockMove(MoveKind.RESERVE, RED_L, 4),
        )

    def test_binding_change_with_same_quantity_still_moves(self):
        moves = plan_line_edit(RED_M, 3, BLUE_M, 3)
        assert net_effect(moves) == {RED_M: 3, BLUE_M: -3}


class TestPlanOrderRelease:

    def test_aggregates_per_cell(self):
        moves = plan_order_release([(RED_M, 2), (RED_L, 1), (RED_M, 3)])
        assert StockMove(MoveKind.RELEASE, RED_M, 5) in moves
        assert StockMove(MoveKind.RELEASE, RED_L, 1) in moves
        assert len(moves) == 2

    def test_empty_order_releases_nothing(self):
        assert plan_order_release([]) == ()

    def test_sorted_by_cell(self):
        moves = plan_order_release([(BLUE_M, 1), (RED_M, 1), (RED_L, 1)])
        assert [m.key for m in moves] == sorted(
            [BLUE_M, RED_M, RED_L], key=lambda k: k.sort_key()
        )


class TestReservationOrder:

    def test_sorted_by_key_then_input_position(self):
        keys = [BLUE_M, RED_M, RED_L, RED_M]
        order = reservation_order(keys)
        assert [keys[i] for i in order] == [RED_L, RED_M, RED_M, BLUE_M]
        # Ties keep input order
        assert order.index(1) < order.index(3)

    def test_same_keys_same_order(self):
        assert reservation_order([RED_L, BLUE_M]) == reservation_order([RED_L, BLUE_M])


class TestSignedDelta:

    def test_reserve_is_negative(self):
        assert StockMove(MoveKind.RESERVE, RED_M, 4).signed_delta == -4

    def test_release_is_positive(self):
        assert StockMove(MoveKind.RELEASE, RED_M, 4).signed_delta == 4

    def test_net_effect_drops_zero(self):
        moves = [
            StockMove(MoveKind.RESERVE, RED_M, 2),
            StockMove(MoveKind.RELEASE, RED_M, 2),
        ]
        assert net_effect(moves) == {}
