"""
InvoiceSequencer -- invoice number allocation via a counter row.

Responsibility:
    Hands out invoice numbers from a named counter row in the same
    transaction as the order that uses them.  An aborted order therefore
    returns its number and committed orders see a gap-free sequence.

Architecture position:
    Kernel > Services -- flush-only, runs inside the checkout unit.

Invariants enforced:
    - The increment is a single relative UPDATE on the counter row
      (``current_value = current_value + 1``), never max(invoice_number)+1
      and never a read-then-write of a value held in Python.  The UPDATE
      takes the row lock on PostgreSQL and the write lock on SQLite, so
      concurrent allocations serialize.
    - No two committed orders share an invoice number.  The unique index on
      ``orders.invoice_number`` backs this up.

Failure modes:
    - IntegrityError when two sessions create the counter row on first use
      at the same time.  The atomic executor retries the whole unit.
"""

from sqlalchemy import BigInteger, String, select, update
from sqlalchemy.orm import Mapped, Session, mapped_column

from retail_kernel.db.base import Base
from retail_kernel.logging_config import get_logger

logger = get_logger("services.invoice_sequencer")


class InvoiceCounter(Base):
    """
    Invoice counter table.

    ``current_value`` is the last number handed out.
    """

    __tablename__ = "invoice_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class InvoiceSequencer:
    """
    Allocate monotonically increasing invoice numbers.

    Usage:
        def unit(session):
            number = InvoiceSequencer(session).next_invoice_number()
            ...  # create the order with ``number``
        run_atomic(unit)
    """

    DEFAULT_COUNTER = "invoice"

    def __init__(
        self,
        session: Session,
        start_number: int = 1,
        counter_name: str = DEFAULT_COUNTER,
    ):
        if start_number < 1:
            raise ValueError(f"start_number must be >= 1, got {start_number}")
        self._session = session
        self._start_number = start_number
        self._counter_name = counter_name

    def next_invoice_number(self) -> int:
        """
        Allocate the next invoice number.

        Preconditions:
            - The caller is inside an active unit; the number is only
              consumed when that unit commits.

        Postconditions:
            - Returns a value strictly greater than every number committed
              before it for this counter.
        """
        if not self._increment():
            # First use: seed one below the start so the increment yields it
            self._session.add(
                InvoiceCounter(
                    name=self._counter_name,
                    current_value=self._start_number - 1,
                )
            )
            self._session.flush()
            self._increment()

        value = self._session.execute(
            select(InvoiceCounter.current_value)
            .where(InvoiceCounter.name == self._counter_name)
        ).scalar_one()
        logger.debug(
            "invoice_number_allocated",
            extra={"counter": self._counter_name, "value": value},
        )
        return value

    def current_value(self) -> int | None:
        """Last number handed out, or None if the counter was never used."""
        return self._session.execute(
            select(InvoiceCounter.current_value)
            .where(InvoiceCounter.name == self._counter_name)
        ).scalar_one_or_none()

    def peek_next(self) -> int:
        """The number the next allocation would return if nothing else runs first."""
        current = self.current_value()
        if current is None:
            return self._start_number
        return current + 1

    def _increment(self) -> bool:
        result = self._session.execute(
            update(InvoiceCounter)
            .where(InvoiceCounter.name == self._counter_name)
            .values(current_value=InvoiceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
