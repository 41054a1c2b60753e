"""
Tests for checkout (OrderTransactionService).

Verifies:
- A committed checkout writes the order, its lines, the financial record,
  the reservations and the invoice number together
- A failing line aborts the whole unit and reports its index
- Invalid requests never open a transaction
- The receipt is produced after commit and its failures never undo the order
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from retail_kernel.domain.cart import CustomerInfo
from retail_kernel.domain.values import OrderStatus, PaymentState
from retail_kernel.models.customer import Customer
from retail_kernel.models.financial_record import FinancialRecord
from retail_kernel.models.order import Order
from retail_kernel.models.stock_movement import StockMovement
from retail_kernel.services.invoice_sequencer import InvoiceSequencer
from retail_kernel.services.order_transaction import (
    CheckoutStatus,
    OrderTransactionService,
)
from retail_kernel.services.receipt_dispatcher import ReceiptDispatcher


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.fixture
def five_sizes(make_product):
    return make_product(
        "Hoodie",
        {"Grey": {"XS": (5, 1), "S": (5, 1), "M": (1, 1), "L": (5, 1), "XL": (5, 1)}},
        price="40.00",
    )


class TestCheckoutCommit:

    def test_commits_order_lines_record_and_stock(
        self, place_order, make_line, tee, stock_of, order_selector
    ):
        result = place_order(
            make_line(tee, "Red", "M", 2, "25.00"),
            make_line(tee, "Blue", "M", 1, "30.00"),
        )

        assert result.status == CheckoutStatus.COMMITTED
        assert result.invoice_number == 1
        assert result.total == Decimal("80.00")
        assert stock_of(tee, "Red", "M") == 8
        assert stock_of(tee, "Blue", "M") == 9

        order = order_selector.get_order(result.order_id)
        assert order.status == OrderStatus.INTAKE
        assert order.total_amount == Decimal("80.00")
        assert order.line_total_sum == order.total_amount
        assert [line.product_name for line in order.lines] == ["Classic Tee", "Classic Tee"]
        assert [line.quantity for line in order.lines] == [2, 1]
        assert order.invoice_label == "Invoice #00001"

        record = order_selector.financial_record(result.order_id)
        assert record.record_type == "income"
        assert record.amount == order.total_amount
        assert record.status == "intake"
        assert record.description == "POS transaction for invoice #1"
        assert record.customer_name == "Ada Walker"

    def test_movements_reference_the_order(self, place_order, make_line, tee, session):
        result = place_order(make_line(tee, "Red", "S", 3))
        movements = session.execute(
            select(StockMovement).where(StockMovement.order_id == result.order_id)
        ).scalars().all()
        assert [(m.delta, m.reason) for m in movements] == [(-3, "sale_reservation")]

    def test_invoice_numbers_are_sequential(self, place_order, make_line, tee):
        numbers = [place_order(make_line(tee, "Red", "L", 1)).invoice_number for _ in range(3)]
        assert numbers == [1, 2, 3]

    def test_completed_at_creation(self, place_order, make_line, tee, stock_of, order_selector):
        result = place_order(make_line(tee, "Red", "M", 4), status=OrderStatus.COMPLETED)

        order = order_selector.get_order(result.order_id)
        assert order.status == "completed"
        assert order.stock_consumed_at is not None
        assert stock_of(tee, "Red", "M") == 6

    def test_part_payment_recorded(self, place_order, make_line, tee, order_selector):
        result = place_order(
            make_line(tee, "Red", "M", 2, "25.00"),
            payment_state=PaymentState.PART_PAYMENT,
            part_payment_amount=Decimal("20.00"),
        )
        order = order_selector.get_order(result.order_id)
        record = order_selector.financial_record(result.order_id)
        assert order.payment_state == "part_payment"
        assert order.part_payment_amount == Decimal("20.00")
        assert record.payment_state == "part_payment"
        assert record.part_payment_amount == Decimal("20.00")

    def test_customer_reused_by_phone(self, place_order, make_line, tee, session):
        first = place_order(make_line(tee, "Red", "M", 1))
        second = place_order(
            make_line(tee, "Red", "M", 1),
            customer=CustomerInfo(name="Ada W.", phone="555-0100", email="ada@example.com"),
        )
        assert _count(session, Customer) == 1
        orders = {
            o.id: o for o in session.execute(select(Order)).scalars()
        }
        assert orders[first.order_id].customer_id == orders[second.order_id].customer_id
        customer = session.execute(select(Customer)).scalar_one()
        assert customer.name == "Ada W."
        assert customer.email == "ada@example.com"

    def test_logs_commit_with_invoice_context(self, place_order, make_line, tee, captured_logs):
        place_order(make_line(tee, "Red", "M", 1))
        committed = [r for r in captured_logs() if r["message"] == "checkout_committed"]
        assert len(committed) == 1
        assert committed[0]["invoice_number"] == "1"
        assert committed[0]["terminal_id"] == "till-1"
        assert "duration_ms" in committed[0]


class TestCheckoutAbort:

    def test_failing_line_rolls_back_everything(
        self, checkout_service, make_request, make_line, five_sizes, stock_of, session
    ):
        sizes = ["XS", "S", "M", "L", "XL"]
        before = {size: stock_of(five_sizes, "Grey", size) for size in sizes}
        movements_before = _count(session, StockMovement)

        result = checkout_service.checkout(
            make_request(*[make_line(five_sizes, "Grey", size, 2) for size in sizes])
        )

        assert result.status == CheckoutStatus.INSUFFICIENT_STOCK
        assert result.failed_line_index == 2
        assert result.error_code == "INSUFFICIENT_STOCK"
        assert result.detail["requested"] == 2
        assert result.detail["available"] == 1
        assert result.order_id is None

        assert {size: stock_of(five_sizes, "Grey", size) for size in sizes} == before
        assert _count(session, StockMovement) == movements_before
        assert _count(session, Order) == 0
        assert _count(session, FinancialRecord) == 0
        assert _count(session, Customer) == 0
        assert InvoiceSequencer(session).current_value() is None

    def test_aborted_checkout_does_not_consume_invoice_number(
        self, checkout_service, place_order, make_request, make_line, tee
    ):
        assert place_order(make_line(tee, "Red", "M", 1)).invoice_number == 1
        failed = checkout_service.checkout(make_request(make_line(tee, "Red", "M", 50)))
        assert not failed.is_success
        assert place_order(make_line(tee, "Red", "M", 1)).invoice_number == 2

    def test_missing_cell(self, checkout_service, make_request, make_line, tee, stock_of):
        result = checkout_service.checkout(
            make_request(make_line(tee, "Red", "M", 1), make_line(tee, "Green", "M", 1))
        )
        assert result.status == CheckoutStatus.NOT_FOUND
        assert result.error_code == "STOCK_CELL_NOT_FOUND"
        assert result.failed_line_index == 1
        assert stock_of(tee, "Red", "M") == 10

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"payment_state": PaymentState.PART_PAYMENT, "part_payment_amount": Decimal("0")},
            {"payment_state": PaymentState.PART_PAYMENT, "part_payment_amount": Decimal("25.00")},
            {"payment_state": PaymentState.PART_PAYMENT, "part_payment_amount": None},
        ],
    )
    def test_invalid_part_payment(
        self, checkout_service, make_request, make_line, tee, stock_of, session, kwargs
    ):
        result = checkout_service.checkout(
            make_request(make_line(tee, "Red", "M", 1, "25.00"), **kwargs)
        )
        assert result.status == CheckoutStatus.INVALID_REQUEST
        assert result.error_code == "INVALID_PAYMENT_AMOUNT"
        assert stock_of(tee, "Red", "M") == 10
        assert _count(session, Order) == 0

    @pytest.mark.parametrize("price", ["NaN", "sNaN", "Infinity", "-Infinity"])
    def test_non_finite_unit_price(
        self, checkout_service, make_request, make_line, tee, stock_of, session, price
    ):
        result = checkout_service.checkout(
            make_request(
                make_line(tee, "Red", "S", 1),
                make_line(tee, "Red", "M", 1, price),
            )
        )
        assert result.status == CheckoutStatus.INVALID_REQUEST
        assert result.error_code == "INVALID_ORDER_REQUEST"
        assert result.failed_line_index == 1
        assert stock_of(tee, "Red", "S") == 10
        assert _count(session, Order) == 0
        assert _count(session, FinancialRecord) == 0

    @pytest.mark.parametrize("amount", [Decimal("NaN"), Decimal("Infinity")])
    def test_non_finite_part_payment(
        self, checkout_service, make_request, make_line, tee, stock_of, session, amount
    ):
        result = checkout_service.checkout(
            make_request(
                make_line(tee, "Red", "M", 1),
                payment_state=PaymentState.PART_PAYMENT,
                part_payment_amount=amount,
            )
        )
        assert result.status == CheckoutStatus.INVALID_REQUEST
        assert result.error_code == "INVALID_ORDER_REQUEST"
        assert stock_of(tee, "Red", "M") == 10
        assert _count(session, Order) == 0

    def test_empty_cart(self, checkout_service, make_request):
        result = checkout_service.checkout(make_request())
        assert result.status == CheckoutStatus.INVALID_REQUEST
        assert result.error_code == "INVALID_ORDER_REQUEST"

    def test_zero_quantity_reports_line(self, checkout_service, make_request, make_line, tee):
        result = checkout_service.checkout(
            make_request(make_line(tee, "Red", "M", 1), make_line(tee, "Red", "S", 0))
        )
        assert result.status == CheckoutStatus.INVALID_REQUEST
        assert result.error_code == "INVALID_QUANTITY"
        assert result.failed_line_index == 1

    def test_rejection_logged(self, checkout_service, make_request, make_line, tee, captured_logs):
        checkout_service.checkout(make_request(make_line(tee, "Red", "M", 99)))
        rejected = [r for r in captured_logs() if r["message"] == "checkout_rejected"]
        assert rejected[0]["error_code"] == "INSUFFICIENT_STOCK"
        assert rejected[0]["failed_line_index"] == 0


class RecordingStore:
    def __init__(self):
        self.documents: dict[str, bytes] = {}

    def put(self, name: str, blob: bytes) -> str:
        self.documents[name] = blob
        return f"memory://{name}"


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str, str]] = []
        self.fail = fail

    def send(self, recipient_email: str, subject: str, document_reference: str) -> None:
        if self.fail:
            raise ConnectionError("smtp unavailable")
        self.sent.append((recipient_email, subject, document_reference))


class TestCheckoutReceipt:

    @pytest.fixture
    def service_with(self, session_factory, clock, retry_policy):
        def _build(store=None, notifier=None):
            return OrderTransactionService(
                session_factory,
                clock,
                retry_policy,
                dispatcher=ReceiptDispatcher(store=store, notifier=notifier),
            )

        return _build

    def test_receipt_stored_and_sent(self, service_with, make_request, make_line, tee):
        store, notifier = RecordingStore(), RecordingNotifier()
        result = service_with(store, notifier).checkout(
            make_request(
                make_line(tee, "Red", "M", 1),
                customer=CustomerInfo(name="Ada", email="ada@example.com"),
            )
        )

        assert result.is_success
        assert result.receipt.is_success
        assert result.receipt.notified
        assert list(store.documents) == ["Invoice_1.pdf"]
        assert b"Invoice #00001" in store.documents["Invoice_1.pdf"]
        assert notifier.sent == [
            ("ada@example.com", "Your Receipt • Invoice #00001", "memory://Invoice_1.pdf")
        ]

    def test_notifier_failure_keeps_order(
        self, service_with, make_request, make_line, tee, order_selector, stock_of, captured_logs
    ):
        result = service_with(RecordingStore(), RecordingNotifier(fail=True)).checkout(
            make_request(
                make_line(tee, "Red", "M", 1),
                customer=CustomerInfo(name="Ada", email="ada@example.com"),
            )
        )

        assert result.status == CheckoutStatus.COMMITTED
        assert not result.receipt.is_success
        assert not result.receipt.notified
        assert order_selector.find_order(result.order_id) is not None
        assert stock_of(tee, "Red", "M") == 9
        assert any(r["message"] == "receipt_notify_failed" for r in captured_logs())

    def test_no_receipt_for_failed_checkout(self, service_with, make_request, make_line, tee):
        store = RecordingStore()
        result = service_with(store).checkout(make_request(make_line(tee, "Red", "M", 99)))
        assert result.receipt is None
        assert store.documents == {}
