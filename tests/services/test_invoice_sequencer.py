"""
Tests for invoice number allocation.

Verifies:
- The first number is the configured start number
- Numbers increase by one per committed allocation
- A rolled-back allocation returns its number
- Independent counters do not interfere
"""

import pytest

from retail_kernel.services.invoice_sequencer import InvoiceSequencer


def _allocate(session_factory, commit=True, **kwargs) -> int:
    s = session_factory()
    try:
        number = InvoiceSequencer(s, **kwargs).next_invoice_number()
        if commit:
            s.commit()
        else:
            s.rollback()
        return number
    finally:
        s.close()


class TestInvoiceSequencer:

    def test_starts_at_one_by_default(self, session_factory):
        assert _allocate(session_factory) == 1

    def test_configured_start_number(self, session_factory):
        assert _allocate(session_factory, start_number=1001) == 1001
        assert _allocate(session_factory, start_number=1001) == 1002

    def test_start_number_ignored_once_counter_exists(self, session_factory):
        _allocate(session_factory)
        assert _allocate(session_factory, start_number=500) == 2

    def test_sequential(self, session_factory):
        numbers = [_allocate(session_factory) for _ in range(5)]
        assert numbers == [1, 2, 3, 4, 5]

    def test_rollback_returns_number(self, session_factory):
        assert _allocate(session_factory) == 1
        assert _allocate(session_factory, commit=False) == 2
        assert _allocate(session_factory) == 2

    def test_rollback_of_first_use_removes_counter(self, session_factory, session):
        _allocate(session_factory, commit=False)
        assert InvoiceSequencer(session).current_value() is None
        assert _allocate(session_factory) == 1

    def test_named_counters_are_independent(self, session_factory):
        _allocate(session_factory)
        _allocate(session_factory)
        assert _allocate(session_factory, counter_name="till-2") == 1

    def test_peek_does_not_allocate(self, session_factory, session):
        sequencer = InvoiceSequencer(session, start_number=10)
        assert sequencer.peek_next() == 10
        _allocate(session_factory, start_number=10)
        assert sequencer.current_value() == 10
        assert sequencer.peek_next() == 11

    def test_start_number_must_be_positive(self, session):
        with pytest.raises(ValueError):
            InvoiceSequencer(session, start_number=0)
