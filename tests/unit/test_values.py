"""Unit tests for shared value types and the deterministic clock."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from retail_kernel.domain.clock import DeterministicClock, SystemClock
from retail_kernel.domain.values import (
    OrderStatus,
    StockKey,
    format_invoice_number,
    line_total,
)


class TestInvoiceFormatting:

    def test_zero_padded(self):
        assert format_invoice_number(42) == "Invoice #00042"

    def test_wider_than_width_is_not_truncated(self):
        assert format_invoice_number(1234567) == "Invoice #1234567"

    def test_custom_width(self):
        assert format_invoice_number(7, width=3) == "Invoice #007"


class TestValues:

    def test_line_total(self):
        assert line_total(3, Decimal("2.50")) == Decimal("7.50")

    def test_status_compares_to_stored_string(self):
        assert OrderStatus.COMPLETED == "completed"

    def test_stock_key_equality(self):
        product = uuid4()
        assert StockKey(product, "Red", "M") == StockKey(product, "Red", "M")
        assert StockKey(product, "Red", "M") != StockKey(product, "Red", "L")


class TestClock:

    def test_deterministic_clock_is_fixed(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()

    def test_advance_and_tick(self):
        start = datetime(2025, 6, 1, tzinfo=timezone.utc)
        clock = DeterministicClock(start)
        clock.advance(30)
        assert clock.now() == start + timedelta(seconds=30)
        assert clock.tick() == start + timedelta(seconds=31)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2026, 1, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target

    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo is timezone.utc
