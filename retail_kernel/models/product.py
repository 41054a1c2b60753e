"""
Module: retail_kernel.models.product
Responsibility: ORM persistence for the catalog hierarchy Product ->
    ColorVariant -> StockCell.  A StockCell is the unit of inventory: one
    (product, color, size) binding with its available count.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - (product_id, color) is unique per product (uq_variant_product_color).
    - (variant_id, size) is unique per variant (uq_cell_variant_size).
    - available >= 0 and reorder_threshold >= 0 (CHECK constraints).  The
      ledger's conditional UPDATE is the primary guard; the CHECK is the
      backstop.

Failure modes:
    - IntegrityError on a duplicate color or size definition.
    - IntegrityError if anything writes a negative available count.

Non-goals:
    - Cells are never written directly by callers.  ``available`` changes
      only through StockLedger.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_kernel.db.base import TrackedBase, UUIDString


class Product(TrackedBase):
    """
    A sellable catalog item with one or more color variants.

    Name, price and image are last-writer-wins metadata.
    """

    __tablename__ = "products"

    __table_args__ = (Index("idx_product_name", "name"),)

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Default selling price; the till may override per line
    unit_price: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    image_url: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    color_variants: Mapped[list["ColorVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ColorVariant.position",
        lazy="selectin",
    )

    def variant_for(self, color: str) -> "ColorVariant | None":
        for variant in self.color_variants:
            if variant.color == color:
                return variant
        return None

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.name}>"


class ColorVariant(TrackedBase):
    """One color of a product.  Owns the per-size stock cells."""

    __tablename__ = "color_variants"

    __table_args__ = (
        UniqueConstraint("product_id", "color", name="uq_variant_product_color"),
        Index("idx_variant_product", "product_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    color: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Display order within the product
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    product: Mapped["Product"] = relationship(back_populates="color_variants")

    stock_cells: Mapped[list["StockCell"]] = relationship(
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="StockCell.position",
        lazy="selectin",
    )

    def cell_for(self, size: str) -> "StockCell | None":
        for cell in self.stock_cells:
            if cell.size == size:
                return cell
        return None

    def __repr__(self) -> str:
        return f"<ColorVariant {self.product_id} {self.color}>"


class StockCell(TrackedBase):
    """
    Available count of one (product, color, size) binding.

    Contract:
        ``available`` is the number of units that can still be sold.
        Reservations at sale time subtract from it; releases add back.

    Guarantees:
        - available >= 0 at every commit (ck_stock_cell_available).
        - reorder_threshold >= 0 (ck_stock_cell_threshold).
    """

    __tablename__ = "stock_cells"

    __table_args__ = (
        UniqueConstraint("variant_id", "size", name="uq_cell_variant_size"),
        CheckConstraint("available >= 0", name="ck_stock_cell_available"),
        CheckConstraint("reorder_threshold >= 0", name="ck_stock_cell_threshold"),
        Index("idx_cell_variant", "variant_id"),
    )

    variant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("color_variants.id", ondelete="CASCADE"),
        nullable=False,
    )

    size: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    available: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Low-stock alert level
    reorder_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    variant: Mapped["ColorVariant"] = relationship(back_populates="stock_cells")

    @property
    def is_out_of_stock(self) -> bool:
        return self.available <= 0

    @property
    def is_low_stock(self) -> bool:
        """In stock but at or below the reorder threshold."""
        return 0 < self.available <= self.reorder_threshold

    def __repr__(self) -> str:
        return f"<StockCell {self.variant_id} {self.size} available={self.available}>"
