"""
CatalogService -- products, color variants and stock cell definitions.

Flush-only; runs inside the caller's unit.  Product metadata (name, price,
image) is last-writer-wins.  Stock cells are created here with zero units;
their initial stock goes through the StockLedger as an ``initial_stock``
movement so the movement journal accounts for every unit.
"""

from collections.abc import Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from retail_kernel.domain.cart import to_money
from retail_kernel.domain.clock import Clock
from retail_kernel.domain.values import MovementReason
from retail_kernel.exceptions import (
    DuplicateStockCellError,
    InvalidQuantityError,
    NotFoundError,
    StockCellNotFoundError,
    ValidationError,
)
from retail_kernel.logging_config import get_logger
from retail_kernel.models.product import ColorVariant, Product, StockCell
from retail_kernel.services.base import BaseService
from retail_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.catalog")

_UNSET = object()


def _non_negative_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidQuantityError(value)
    return value


class CatalogService(BaseService):
    """Defines what can be stocked and sold."""

    def __init__(self, session: Session, actor_id: UUID, clock: Clock | None = None):
        super().__init__(session, clock)
        self.actor_id = actor_id

    def create_product(
        self,
        name: str,
        unit_price: Decimal | None = None,
        image_url: str | None = None,
    ) -> Product:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Product name is required")
        product = Product(
            name=name,
            unit_price=to_money(unit_price) if unit_price is not None else None,
            image_url=image_url,
            created_by_id=self.actor_id,
        )
        self.session.add(product)
        self.session.flush()
        logger.info("product_created", extra={"product_id": str(product.id)})
        return product

    def get_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", str(product_id))
        return product

    def define_variant(
        self,
        product_id: UUID,
        color: str,
        sizes: Mapping[str, tuple[int, int]],
    ) -> ColorVariant:
        """
        Add a color (or new sizes to an existing color) with initial stock.

        ``sizes`` maps size -> (initial_available, reorder_threshold).

        Raises:
            NotFoundError: unknown product.
            DuplicateStockCellError: a size already exists for the color.
            InvalidQuantityError: negative or non-integer counts.
        """
        color = (color or "").strip()
        if not color:
            raise ValidationError("Color is required")
        product = self.get_product(product_id)

        variant = product.variant_for(color)
        if variant is None:
            variant = ColorVariant(
                product=product,
                color=color,
                position=len(product.color_variants),
                created_by_id=self.actor_id,
            )
            self.session.add(variant)

        new_cells: list[tuple[StockCell, int]] = []
        for size, (initial, threshold) in sizes.items():
            size = (size or "").strip()
            if not size:
                raise ValidationError("Size is required")
            if variant.cell_for(size) is not None:
                raise DuplicateStockCellError(str(product_id), color, size)
            initial = _non_negative_int(initial)
            cell = StockCell(
                variant=variant,
                size=size,
                available=0,
                reorder_threshold=_non_negative_int(threshold),
                position=len(variant.stock_cells),
                created_by_id=self.actor_id,
            )
            self.session.add(cell)
            new_cells.append((cell, initial))
        self.session.flush()

        ledger = StockLedger(self.session, self.clock, self.actor_id)
        for cell, initial in new_cells:
            if initial > 0:
                ledger.adjust(
                    product_id, color, cell.size, initial,
                    reason=MovementReason.INITIAL_STOCK,
                ).raise_for_status()

        logger.info(
            "variant_defined",
            extra={
                "product_id": str(product_id),
                "color": color,
                "sizes": [cell.size for cell, _ in new_cells],
            },
        )
        return variant

    def update_product_details(
        self,
        product_id: UUID,
        *,
        name: str | None = None,
        unit_price: object = _UNSET,
        image_url: object = _UNSET,
    ) -> Product:
        """Last-writer-wins metadata update.  Omitted fields are left alone."""
        product = self.get_product(product_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Product name is required")
            product.name = name
        if unit_price is not _UNSET:
            product.unit_price = to_money(unit_price) if unit_price is not None else None
        if image_url is not _UNSET:
            product.image_url = image_url
        product.updated_by_id = self.actor_id
        self.session.flush()
        return product

    def set_reorder_threshold(
        self,
        product_id: UUID,
        color: str,
        size: str,
        threshold: int,
    ) -> StockCell:
        product = self.get_product(product_id)
        variant = product.variant_for(color)
        cell = variant.cell_for(size) if variant is not None else None
        if cell is None:
            raise StockCellNotFoundError(str(product_id), color, size)
        cell.reorder_threshold = _non_negative_int(threshold)
        cell.updated_by_id = self.actor_id
        self.session.flush()
        return cell
