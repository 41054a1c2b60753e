"""
Module: retail_kernel.models.financial_record
Responsibility: ORM persistence for the financial ledger that mirrors orders.
Architecture position: Kernel > Models.

An income record shares its primary key with the order it mirrors, so the
two are always written and deleted together inside one atomic unit.  There
is no foreign key: expense records exist without an order.
"""

from decimal import Decimal

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from retail_kernel.db.base import TrackedBase
from retail_kernel.domain.values import FinancialRecordType, PaymentState


class FinancialRecord(TrackedBase):
    """
    Income or expense entry.

    For income records: ``id == order.id``, ``amount == order total`` and
    ``status`` / ``payment_state`` mirror the order.
    """

    __tablename__ = "financial_records"

    __table_args__ = (
        Index("idx_financial_record_type", "record_type"),
        Index("idx_financial_record_status", "status"),
    )

    record_type: Mapped[FinancialRecordType] = mapped_column(
        String(20),
        nullable=False,
        default=FinancialRecordType.INCOME,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    # Mirrors Order.status for income records
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    payment_state: Mapped[PaymentState | None] = mapped_column(
        String(20),
        nullable=True,
    )

    part_payment_amount: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
    )

    customer_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<FinancialRecord {self.id} {self.record_type} {self.amount}>"
