"""
Module: retail_kernel.models.stock_movement
Responsibility: Append-only journal of every successful stock ledger
    mutation.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per successful reserve/release/adjust.  Failed ledger calls
      write nothing.
    - balance_after is the cell's available count right after the change.
    - order_id is not a foreign key: movements outlive deleted orders.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from retail_kernel.db.base import Base, UUIDString
from retail_kernel.domain.values import MovementReason


class StockMovement(Base):
    """Signed change to one stock cell and why it happened."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_cell", "cell_id"),
        Index("idx_movement_order", "order_id"),
        Index("idx_movement_recorded", "recorded_at"),
    )

    cell_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_cells.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Denormalized binding so the journal reads without joins
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    color: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    size: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    # Negative for reservations, positive for releases
    delta: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    reason: Mapped[MovementReason] = mapped_column(
        String(30),
        nullable=False,
    )

    order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    balance_after: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    actor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<StockMovement {self.cell_id} {self.delta:+d} {self.reason}>"
