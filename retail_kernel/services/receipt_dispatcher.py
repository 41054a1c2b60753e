"""
Receipt hand-off after a committed checkout.

Contract:
    ``ReceiptDispatcher.dispatch(payload)`` renders the receipt, stores it as
    ``Invoice_<n>.pdf`` and notifies the customer.  It runs only AFTER the
    order unit committed.  Any failure in rendering, storage or delivery is
    logged and reported in the returned DispatchOutcome; it never undoes
    the order.

Architecture: Kernel > Services.  No database access; the collaborators
are ports supplied by the host application.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from retail_kernel.domain.values import format_invoice_number
from retail_kernel.logging_config import get_logger

logger = get_logger("services.receipt_dispatcher")


@dataclass(frozen=True)
class PayloadLine:
    product_name: str
    color: str
    size: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class OrderPayload:
    """Everything a receipt needs, detached from the ORM session."""

    order_id: UUID
    invoice_number: int
    created_at: datetime
    customer_name: str
    customer_email: str | None
    customer_phone: str | None
    customer_address: str | None
    lines: tuple[PayloadLine, ...]
    total: Decimal
    status: str
    payment_state: str
    part_payment_amount: Decimal | None = None

    @property
    def amount_paid(self) -> Decimal:
        if self.part_payment_amount is not None:
            return self.part_payment_amount
        return self.total

    @property
    def balance_due(self) -> Decimal:
        return self.total - self.amount_paid

    @property
    def invoice_label(self) -> str:
        return format_invoice_number(self.invoice_number)


@runtime_checkable
class ReceiptRenderer(Protocol):
    """Turns a payload into a printable document."""

    def render(self, payload: OrderPayload) -> bytes: ...


@runtime_checkable
class DocumentStore(Protocol):
    """Persists a rendered document and returns a reference to it."""

    def put(self, name: str, blob: bytes) -> str: ...


@runtime_checkable
class ReceiptNotifier(Protocol):
    """Fire-and-forget delivery of a stored receipt."""

    def send(self, recipient_email: str, subject: str, document_reference: str) -> None: ...


class PlainTextReceiptRenderer:
    """Minimal renderer used when the host supplies none."""

    def render(self, payload: OrderPayload) -> bytes:
        rows = [
            payload.invoice_label,
            f"Date: {payload.created_at.isoformat()}",
            f"Customer: {payload.customer_name}",
            "",
        ]
        for line in payload.lines:
            rows.append(
                f"{line.product_name} {line.color}/{line.size} "
                f"x{line.quantity} @ {line.unit_price} = {line.line_total}"
            )
        rows.append("")
        rows.append(f"Total: {payload.total}")
        if payload.part_payment_amount is not None:
            rows.append(f"Paid: {payload.amount_paid}")
            rows.append(f"Balance due: {payload.balance_due}")
        return "\n".join(rows).encode("utf-8")


@dataclass(frozen=True)
class DispatchOutcome:
    document_name: str
    document_reference: str | None = None
    notified: bool = False
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_success(self) -> bool:
        return not self.errors


def document_name_for(invoice_number: int) -> str:
    return f"Invoice_{invoice_number}.pdf"


def receipt_subject(invoice_number: int, width: int = 5) -> str:
    return f"Your Receipt • {format_invoice_number(invoice_number, width)}"


class ReceiptDispatcher:
    """
    Render, store and send the receipt for a committed order.

    Each step is independent of the order's durability: a failing step is
    logged at WARNING with the invoice number and later steps that depend
    on it are skipped.
    """

    def __init__(
        self,
        renderer: ReceiptRenderer | None = None,
        store: DocumentStore | None = None,
        notifier: ReceiptNotifier | None = None,
        invoice_width: int = 5,
    ):
        self._renderer = renderer or PlainTextReceiptRenderer()
        self._invoice_width = invoice_width
        self._store = store
        self._notifier = notifier

    def dispatch(self, payload: OrderPayload) -> DispatchOutcome:
        name = document_name_for(payload.invoice_number)
        log_extra = {"invoice_number": payload.invoice_number, "document": name}

        try:
            blob = self._renderer.render(payload)
        except Exception as exc:
            logger.warning(
                "receipt_render_failed",
                extra={**log_extra, "error": str(exc)},
                exc_info=True,
            )
            return DispatchOutcome(name, errors=(f"render: {exc}",))

        if self._store is None:
            logger.debug("receipt_store_not_configured", extra=log_extra)
            return DispatchOutcome(name)

        try:
            reference = self._store.put(name, blob)
        except Exception as exc:
            logger.warning(
                "receipt_store_failed",
                extra={**log_extra, "error": str(exc)},
                exc_info=True,
            )
            return DispatchOutcome(name, errors=(f"store: {exc}",))

        if self._notifier is None or not payload.customer_email:
            logger.info("receipt_stored", extra={**log_extra, "reference": reference})
            return DispatchOutcome(name, reference)

        try:
            self._notifier.send(
                payload.customer_email,
                receipt_subject(payload.invoice_number, self._invoice_width),
                reference,
            )
        except Exception as exc:
            logger.warning(
                "receipt_notify_failed",
                extra={**log_extra, "error": str(exc)},
                exc_info=True,
            )
            return DispatchOutcome(name, reference, errors=(f"notify: {exc}",))

        logger.info("receipt_sent", extra={**log_extra, "reference": reference})
        return DispatchOutcome(name, reference, notified=True)
