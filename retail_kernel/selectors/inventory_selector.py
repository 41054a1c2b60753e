"""
Module: retail_kernel.selectors.inventory_selector
Responsibility: Read-only stock queries: single cells, per-product summaries,
    low-stock and out-of-stock listings, and the movement journal.
Architecture position: Kernel > Selectors.

Stock rules:
    - Out of stock: available <= 0.
    - Low stock: 0 < available <= reorder_threshold.  An empty cell is out of
      stock, not low.
    - Stock value: unit_price * available, zero for unpriced products.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, select

from retail_kernel.models.product import ColorVariant, Product, StockCell
from retail_kernel.models.stock_movement import StockMovement
from retail_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CellInfo:
    cell_id: UUID
    product_id: UUID
    product_name: str
    color: str
    size: str
    available: int
    reorder_threshold: int

    @property
    def is_out_of_stock(self) -> bool:
        return self.available <= 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.available <= self.reorder_threshold


@dataclass(frozen=True)
class ProductSummary:
    """Per-product totals shown on the inventory screen."""

    product_id: UUID
    name: str
    unit_price: Decimal | None
    image_url: str | None
    cells: tuple[CellInfo, ...]

    @property
    def total_units(self) -> int:
        return sum(cell.available for cell in self.cells)

    @property
    def stock_value(self) -> Decimal:
        if self.unit_price is None:
            return Decimal("0")
        return self.unit_price * self.total_units

    @property
    def low_stock_count(self) -> int:
        return sum(1 for cell in self.cells if cell.is_low_stock)

    @property
    def out_of_stock_count(self) -> int:
        return sum(1 for cell in self.cells if cell.is_out_of_stock)

    @property
    def colors(self) -> tuple[str, ...]:
        seen: list[str] = []
        for cell in self.cells:
            if cell.color not in seen:
                seen.append(cell.color)
        return tuple(seen)


@dataclass(frozen=True)
class MovementInfo:
    cell_id: UUID
    delta: int
    reason: str
    order_id: UUID | None
    balance_after: int
    actor_id: UUID | None
    recorded_at: datetime


class InventorySelector(BaseSelector):
    """Stock read model."""

    def _cell_query(self):
        return (
            select(
                StockCell.id,
                Product.id,
                Product.name,
                ColorVariant.color,
                StockCell.size,
                StockCell.available,
                StockCell.reorder_threshold,
            )
            .join(ColorVariant, StockCell.variant_id == ColorVariant.id)
            .join(Product, ColorVariant.product_id == Product.id)
            .order_by(
                Product.name,
                Product.id,
                ColorVariant.position,
                StockCell.position,
            )
        )

    @staticmethod
    def _to_cell(row) -> CellInfo:
        return CellInfo(
            cell_id=row[0],
            product_id=row[1],
            product_name=row[2],
            color=row[3],
            size=row[4],
            available=row[5],
            reorder_threshold=row[6],
        )

    def get_cell(self, product_id: UUID, color: str, size: str) -> CellInfo | None:
        row = self.session.execute(
            self._cell_query().where(
                Product.id == product_id,
                ColorVariant.color == color,
                StockCell.size == size,
            )
        ).first()
        return self._to_cell(row) if row is not None else None

    def available(self, product_id: UUID, color: str, size: str) -> int | None:
        cell = self.get_cell(product_id, color, size)
        return cell.available if cell is not None else None

    def list_cells(self, product_id: UUID | None = None) -> list[CellInfo]:
        query = self._cell_query()
        if product_id is not None:
            query = query.where(Product.id == product_id)
        return [self._to_cell(row) for row in self.session.execute(query)]

    def product_summary(self, product_id: UUID) -> ProductSummary | None:
        product = self.session.get(Product, product_id)
        if product is None:
            return None
        return ProductSummary(
            product_id=product.id,
            name=product.name,
            unit_price=product.unit_price,
            image_url=product.image_url,
            cells=tuple(self.list_cells(product_id)),
        )

    def all_product_summaries(self) -> list[ProductSummary]:
        products = self.session.execute(
            select(Product).order_by(Product.name, Product.id)
        ).scalars()
        cells_by_product: dict[UUID, list[CellInfo]] = {}
        for cell in self.list_cells():
            cells_by_product.setdefault(cell.product_id, []).append(cell)
        return [
            ProductSummary(
                product_id=product.id,
                name=product.name,
                unit_price=product.unit_price,
                image_url=product.image_url,
                cells=tuple(cells_by_product.get(product.id, ())),
            )
            for product in products
        ]

    def low_stock_cells(self) -> list[CellInfo]:
        query = self._cell_query().where(
            and_(
                StockCell.available > 0,
                StockCell.available <= StockCell.reorder_threshold,
            )
        )
        return [self._to_cell(row) for row in self.session.execute(query)]

    def out_of_stock_cells(self) -> list[CellInfo]:
        query = self._cell_query().where(StockCell.available <= 0)
        return [self._to_cell(row) for row in self.session.execute(query)]

    def movements_for_cell(self, product_id: UUID, color: str, size: str) -> list[MovementInfo]:
        cell = self.get_cell(product_id, color, size)
        if cell is None:
            return []
        rows = self.session.execute(
            select(StockMovement)
            .where(StockMovement.cell_id == cell.cell_id)
            .order_by(StockMovement.recorded_at, StockMovement.id)
        ).scalars()
        return [
            MovementInfo(
                cell_id=row.cell_id,
                delta=row.delta,
                reason=str(row.reason),
                order_id=row.order_id,
                balance_after=row.balance_after,
                actor_id=row.actor_id,
                recorded_at=row.recorded_at,
            )
            for row in rows
        ]

    def net_movement(self, product_id: UUID, color: str, size: str) -> int:
        """Sum of all recorded deltas; equals ``available`` for a journaled cell."""
        cell = self.get_cell(product_id, color, size)
        if cell is None:
            return 0
        return self.session.execute(
            select(func.coalesce(func.sum(StockMovement.delta), 0))
            .where(StockMovement.cell_id == cell.cell_id)
        ).scalar_one()
