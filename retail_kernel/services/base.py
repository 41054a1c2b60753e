"""
BaseService -- abstract base for flush-only kernel services.

Responsibility:
    Common constructor and session contract.  Concrete services receive a
    SQLAlchemy ``Session`` and persist with ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  The protocol services (checkout, line edit,
    fulfillment, inventory administration) own the transaction through
    ``retail_kernel.db.atomic.run_atomic`` and compose flush-only services
    inside one unit.

Failure modes:
    - A subclass that commits on its own breaks the all-or-nothing
      guarantee of the unit it runs in.
"""

from abc import ABC

from sqlalchemy.orm import Session

from retail_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for flush-only services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only queries that return DTOs belong in
          ``retail_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
