"""
Module: retail_kernel.models.order
Responsibility: ORM persistence for orders and their lines.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - invoice_number is unique (uq_order_invoice_number).  The sequencer is
      the primary guarantee; the constraint is the second line of defense.
    - quantity > 0 on every line (ck_order_line_quantity).
    - ``version`` is SQLAlchemy's version_id_col.  Any UPDATE of an order row
      whose version moved underneath the session raises StaleDataError,
      which the atomic executor retries.
    - total_amount mirrors sum(line_total) and is rewritten on every change
      to the lines.

Failure modes:
    - IntegrityError on a duplicate invoice number.
    - StaleDataError on a concurrent update of the same order.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retail_kernel.db.base import TrackedBase, UUIDString
from retail_kernel.domain.values import OrderStatus, PaymentState, StockKey


class Order(TrackedBase):
    """
    A committed sale.

    Contract:
        Created only by the checkout protocol; mutated only by the line
        editor and the fulfillment service.  While the status is a
        pre-fulfillment status the order holds its line quantities reserved
        in the stock cells.

    Guarantees:
        - invoice_number is assigned once and never changes.
        - stock_consumed_at is set once, when the order is completed.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_order_invoice_number"),
        Index("idx_order_status", "status"),
        Index("idx_order_customer", "customer_id"),
        Index("idx_order_created", "created_at"),
    )

    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Contact snapshot at sale time
    customer_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    customer_phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    customer_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    customer_address: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.INTAKE,
    )

    payment_state: Mapped[PaymentState] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentState.FULL_PAYMENT,
    )

    part_payment_amount: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    invoice_number: Mapped[int] = mapped_column(
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    stock_consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    terminal_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    def computed_total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def __repr__(self) -> str:
        return f"<Order {self.id} invoice={self.invoice_number} status={self.status}>"


class OrderLine(TrackedBase):
    """
    One sold (product, color, size) binding with quantity and price.

    ``product_name`` is a snapshot; renaming the product later does not
    rewrite past orders.
    """

    __tablename__ = "order_lines"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_line_quantity"),
        Index("idx_order_line_order", "order_id"),
        Index("idx_order_line_binding", "product_id", "color", "size"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    product_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    color: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    size: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    unit_price: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    line_total: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    order: Mapped["Order"] = relationship(back_populates="lines")

    @property
    def stock_key(self) -> StockKey:
        return StockKey(self.product_id, self.color, self.size)

    def __repr__(self) -> str:
        return (
            f"<OrderLine {self.order_id}#{self.position} "
            f"{self.color}/{self.size} x{self.quantity}>"
        )
