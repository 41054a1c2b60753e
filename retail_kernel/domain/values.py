"""
Value types shared by the domain, models and services.

Pure: no I/O, no SQLAlchemy.  Enums are ``str`` subclasses so they compare
equal to the strings stored in String columns.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class OrderStatus(str, Enum):
    """Order lifecycle status.

    Contract: ``COMPLETED`` is terminal.  Every other status is a
    pre-fulfillment status whose stock was reserved at sale time.
    """

    INTAKE = "intake"
    PENDING = "pending"
    IN_PROCESS = "in_process"
    URGENT = "urgent"
    COMPLETED = "completed"


class PaymentState(str, Enum):
    """How much of the order total was paid at checkout."""

    FULL_PAYMENT = "full_payment"
    PART_PAYMENT = "part_payment"


class FinancialRecordType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class MovementReason(str, Enum):
    """Why a stock cell changed.  Recorded on every StockMovement."""

    INITIAL_STOCK = "initial_stock"
    SALE_RESERVATION = "sale_reservation"
    EDIT_RESERVATION = "edit_reservation"
    EDIT_RELEASE = "edit_release"
    ORDER_DELETION = "order_deletion"
    MANUAL_RESERVATION = "manual_reservation"
    MANUAL_RELEASE = "manual_release"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True, order=True)
class StockKey:
    """Identifies one stock cell: product, color, size."""

    product_id: UUID
    color: str
    size: str

    def sort_key(self) -> tuple[str, str, str]:
        return (str(self.product_id), self.color, self.size)

    def __str__(self) -> str:
        return f"{self.product_id} {self.color}/{self.size}"


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    """``quantity * unit_price``; the only way a line total is computed."""
    return Decimal(quantity) * unit_price


def format_invoice_number(invoice_number: int, width: int = 5) -> str:
    """Render an invoice number the way receipts print it: ``Invoice #00042``."""
    return f"Invoice #{str(invoice_number).zfill(width)}"
