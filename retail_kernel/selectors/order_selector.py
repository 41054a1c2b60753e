"""
Module: retail_kernel.selectors.order_selector
Responsibility: Read-only order queries: single orders with their lines,
    filtered listings, per-status counts, the mirrored financial record, and
    the quantity of a stock cell bound up in orders.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from retail_kernel.domain.values import OrderStatus, format_invoice_number
from retail_kernel.exceptions import NotFoundError
from retail_kernel.models.financial_record import FinancialRecord
from retail_kernel.models.order import Order, OrderLine
from retail_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class OrderLineInfo:
    position: int
    product_id: UUID
    product_name: str
    color: str
    size: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class OrderInfo:
    id: UUID
    invoice_number: int
    status: str
    payment_state: str
    part_payment_amount: Decimal | None
    total_amount: Decimal
    customer_id: UUID | None
    customer_name: str
    customer_phone: str | None
    customer_email: str | None
    customer_address: str | None
    created_at: datetime
    stock_consumed_at: datetime | None
    version: int
    lines: tuple[OrderLineInfo, ...]

    @property
    def invoice_label(self) -> str:
        return format_invoice_number(self.invoice_number)

    @property
    def line_total_sum(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class FinancialRecordInfo:
    id: UUID
    record_type: str
    amount: Decimal
    status: str
    payment_state: str | None
    part_payment_amount: Decimal | None
    description: str
    customer_name: str | None


class OrderSelector(BaseSelector):
    """Order read model."""

    def get_order(self, order_id: UUID) -> OrderInfo:
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", str(order_id))
        return self._to_dto(order)

    def find_order(self, order_id: UUID) -> OrderInfo | None:
        try:
            return self.get_order(order_id)
        except NotFoundError:
            return None

    def get_by_invoice(self, invoice_number: int) -> OrderInfo | None:
        order = self.session.execute(
            select(Order).where(Order.invoice_number == invoice_number)
        ).scalar_one_or_none()
        return self._to_dto(order) if order is not None else None

    def list_orders(self, status: OrderStatus | str | None = None) -> list[OrderInfo]:
        """Newest first."""
        query = select(Order).order_by(
            Order.created_at.desc(), Order.invoice_number.desc()
        )
        if status is not None:
            query = query.where(Order.status == OrderStatus(status).value)
        return [self._to_dto(order) for order in self.session.execute(query).scalars()]

    def status_counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in OrderStatus}
        rows = self.session.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        )
        for status, count in rows:
            counts[str(status)] = count
        return counts

    def invoice_numbers(self) -> list[int]:
        return list(
            self.session.execute(
                select(Order.invoice_number).order_by(Order.invoice_number)
            ).scalars()
        )

    def reserved_quantity_for_cell(
        self,
        product_id: UUID,
        color: str,
        size: str,
        include_completed: bool = True,
    ) -> int:
        """
        Units of one cell taken by existing orders.

        With ``include_completed=False`` only pre-fulfillment orders count,
        i.e. the units a deletion could still return to stock.
        """
        query = (
            select(func.coalesce(func.sum(OrderLine.quantity), 0))
            .join(Order, OrderLine.order_id == Order.id)
            .where(
                OrderLine.product_id == product_id,
                OrderLine.color == color,
                OrderLine.size == size,
            )
        )
        if not include_completed:
            query = query.where(Order.status != OrderStatus.COMPLETED.value)
        return self.session.execute(query).scalar_one()

    def financial_record(self, order_id: UUID) -> FinancialRecordInfo | None:
        record = self.session.get(FinancialRecord, order_id, populate_existing=True)
        if record is None:
            return None
        return FinancialRecordInfo(
            id=record.id,
            record_type=str(record.record_type),
            amount=record.amount,
            status=str(record.status),
            payment_state=str(record.payment_state) if record.payment_state else None,
            part_payment_amount=record.part_payment_amount,
            description=record.description,
            customer_name=record.customer_name,
        )

    @staticmethod
    def _to_dto(order: Order) -> OrderInfo:
        return OrderInfo(
            id=order.id,
            invoice_number=order.invoice_number,
            status=str(order.status),
            payment_state=str(order.payment_state),
            part_payment_amount=order.part_payment_amount,
            total_amount=order.total_amount,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_email=order.customer_email,
            customer_address=order.customer_address,
            created_at=order.created_at,
            stock_consumed_at=order.stock_consumed_at,
            version=order.version,
            lines=tuple(
                OrderLineInfo(
                    position=line.position,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    color=line.color,
                    size=line.size,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in order.lines
            ),
        )
