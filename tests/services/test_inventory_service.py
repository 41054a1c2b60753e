"""
Tests for catalog definition and back-office stock administration.

Verifies:
- Products, colors and sizes are created with their initial stock journaled
- Duplicate sizes and negative counts are refused without partial writes
- Manual adjust/reserve/release commit on their own
- Low-stock and out-of-stock classification
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from retail_kernel.exceptions import (
    DuplicateStockCellError,
    InvalidQuantityError,
    NotFoundError,
    StockCellNotFoundError,
    ValidationError,
)
from retail_kernel.models.product import Product, StockCell
from retail_kernel.selectors.inventory_selector import InventorySelector
from retail_kernel.services.stock_ledger import LedgerStatus


class TestDefineProduct:

    def test_cells_created_with_initial_stock(self, tee, inventory_selector):
        cells = inventory_selector.list_cells(tee)
        assert [(c.color, c.size, c.available) for c in cells] == [
            ("Red", "S", 10),
            ("Red", "M", 10),
            ("Red", "L", 10),
            ("Blue", "M", 10),
        ]
        movements = inventory_selector.movements_for_cell(tee, "Red", "S")
        assert [(m.delta, m.reason) for m in movements] == [(10, "initial_stock")]

    def test_zero_initial_stock_writes_no_movement(self, make_product, inventory_selector):
        product = make_product("Scarf", {"Green": {"One": (0, 1)}})
        assert inventory_selector.available(product, "Green", "One") == 0
        assert inventory_selector.movements_for_cell(product, "Green", "One") == []

    def test_blank_name_refused(self, inventory, actor_id, session):
        with pytest.raises(ValidationError):
            inventory.define_product("  ", {"Red": {"M": (1, 0)}}, actor_id)
        assert session.execute(select(func.count()).select_from(Product)).scalar_one() == 0

    def test_negative_initial_stock_refused_atomically(self, inventory, actor_id, session):
        with pytest.raises(InvalidQuantityError):
            inventory.define_product(
                "Socks", {"White": {"S": (3, 1), "M": (-1, 1)}}, actor_id
            )
        assert session.execute(select(func.count()).select_from(Product)).scalar_one() == 0
        assert session.execute(select(func.count()).select_from(StockCell)).scalar_one() == 0


class TestDefineVariant:

    def test_add_color(self, inventory, tee, actor_id, inventory_selector):
        inventory.define_variant(tee, "Green", {"M": (4, 1)}, actor_id)
        assert inventory_selector.available(tee, "Green", "M") == 4

    def test_add_size_to_existing_color(self, inventory, tee, actor_id, inventory_selector):
        inventory.define_variant(tee, "Blue", {"XL": (2, 1)}, actor_id)
        summary = inventory_selector.product_summary(tee)
        assert [c.size for c in summary.cells if c.color == "Blue"] == ["M", "XL"]

    def test_duplicate_size_refused(self, inventory, tee, actor_id, inventory_selector):
        with pytest.raises(DuplicateStockCellError):
            inventory.define_variant(tee, "Red", {"XL": (1, 0), "M": (5, 0)}, actor_id)
        assert inventory_selector.get_cell(tee, "Red", "XL") is None
        assert inventory_selector.available(tee, "Red", "M") == 10

    def test_unknown_product(self, inventory, actor_id):
        with pytest.raises(NotFoundError):
            inventory.define_variant(uuid4(), "Red", {"M": (1, 0)}, actor_id)


class TestProductDetails:

    def test_update_details(self, inventory, tee, actor_id, session_factory):
        inventory.update_product_details(
            tee, actor_id, name="Heavy Tee", unit_price=Decimal("30.00"), image_url="tee.png"
        )
        with session_factory() as s:
            product = s.get(Product, tee)
            assert (product.name, product.unit_price, product.image_url) == (
                "Heavy Tee", Decimal("30.00"), "tee.png",
            )

    def test_omitted_fields_untouched(self, inventory, tee, actor_id, session_factory):
        inventory.update_product_details(tee, actor_id, image_url="tee.png")
        with session_factory() as s:
            product = s.get(Product, tee)
            assert product.name == "Classic Tee"
            assert product.unit_price == Decimal("25.00")

    def test_set_reorder_threshold(self, inventory, tee, actor_id, inventory_selector):
        inventory.set_reorder_threshold(tee, "Red", "M", 12, actor_id)
        cell = inventory_selector.get_cell(tee, "Red", "M")
        assert cell.reorder_threshold == 12
        assert cell.is_low_stock

    def test_set_threshold_on_missing_cell(self, inventory, tee, actor_id):
        with pytest.raises(StockCellNotFoundError):
            inventory.set_reorder_threshold(tee, "Red", "XXL", 1, actor_id)


class TestManualStock:

    def test_adjust(self, inventory, tee, actor_id, stock_of):
        assert inventory.adjust_stock(tee, "Red", "M", 5, actor_id).available == 15
        assert inventory.adjust_stock(tee, "Red", "M", -15, actor_id).available == 0
        assert stock_of(tee, "Red", "M") == 0

    def test_adjust_would_go_negative(self, inventory, tee, actor_id, stock_of):
        result = inventory.adjust_stock(tee, "Red", "M", -11, actor_id)
        assert result.status == LedgerStatus.WOULD_GO_NEGATIVE
        assert stock_of(tee, "Red", "M") == 10

    def test_manual_reserve_and_release(self, inventory, tee, actor_id, stock_of, inventory_selector):
        assert inventory.reserve_stock(tee, "Blue", "M", 4, actor_id).is_success
        assert stock_of(tee, "Blue", "M") == 6
        assert inventory.release_stock(tee, "Blue", "M", 4, actor_id).is_success
        assert stock_of(tee, "Blue", "M") == 10
        reasons = {m.reason for m in inventory_selector.movements_for_cell(tee, "Blue", "M")}
        assert {"manual_reservation", "manual_release"} <= reasons

    def test_manual_reserve_insufficient(self, inventory, tee, actor_id, stock_of):
        result = inventory.reserve_stock(tee, "Blue", "M", 11, actor_id)
        assert result.status == LedgerStatus.INSUFFICIENT_STOCK
        assert stock_of(tee, "Blue", "M") == 10

    def test_adjust_missing_cell(self, inventory, tee, actor_id):
        assert inventory.adjust_stock(tee, "Pink", "M", 1, actor_id).status == LedgerStatus.NOT_FOUND


class TestStockClassification:

    def test_low_and_out_of_stock(self, make_product, inventory, actor_id, session):
        product = make_product(
            "Beanie",
            {"Black": {"A": (0, 2), "B": (1, 2), "C": (2, 2), "D": (3, 2)}},
            price="10.00",
        )
        selector = InventorySelector(session)

        assert [c.size for c in selector.out_of_stock_cells()] == ["A"]
        assert [c.size for c in selector.low_stock_cells()] == ["B", "C"]

        summary = selector.product_summary(product)
        assert summary.total_units == 6
        assert summary.stock_value == Decimal("60.00")
        assert summary.low_stock_count == 2
        assert summary.out_of_stock_count == 1
        assert summary.colors == ("Black",)

    def test_unpriced_product_has_zero_value(self, make_product, inventory_selector):
        product = make_product("Sample", {"Grey": {"M": (5, 0)}}, price=None)
        assert inventory_selector.product_summary(product).stock_value == Decimal("0")

    def test_all_summaries_sorted_by_name(self, make_product, inventory_selector):
        make_product("Zip Jacket", {"Black": {"M": (1, 0)}})
        make_product("Apron", {"White": {"One": (1, 0)}})
        assert [s.name for s in inventory_selector.all_product_summaries()] == ["Apron", "Zip Jacket"]

    def test_unknown_product_summary(self, inventory_selector):
        assert inventory_selector.product_summary(uuid4()) is None
