"""
Module: retail_kernel.models.customer
Responsibility: ORM persistence for customers captured at the till.
Architecture position: Kernel > Models.  May import from db/base.py only.

Customers are matched by phone, then email, then name.  None of these is
unique: the directory tolerates duplicates rather than rejecting a sale.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from retail_kernel.db.base import TrackedBase


class Customer(TrackedBase):
    """A buyer and the contact details used for receipts."""

    __tablename__ = "customers"

    __table_args__ = (
        Index("idx_customer_phone", "phone"),
        Index("idx_customer_email", "email"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    address: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Customer {self.id}: {self.name}>"
