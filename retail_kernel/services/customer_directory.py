"""
CustomerDirectory -- find-or-create customers at checkout.

Matching order: phone, then email (case-insensitive), then name
(case-insensitive).  When a match is found, non-empty contact fields from
the till overwrite the stored ones.  Runs inside the checkout unit, so an
aborted sale leaves no customer behind.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retail_kernel.domain.cart import CustomerInfo
from retail_kernel.exceptions import NotFoundError
from retail_kernel.logging_config import get_logger
from retail_kernel.models.customer import Customer
from retail_kernel.services.base import BaseService

logger = get_logger("services.customer_directory")


@dataclass(frozen=True)
class CustomerRecord:
    id: UUID
    name: str
    phone: str | None
    email: str | None
    address: str | None


class CustomerDirectory(BaseService):
    """Customer upsert and lookup."""

    def __init__(self, session: Session, actor_id: UUID):
        super().__init__(session)
        self.actor_id = actor_id

    def upsert(self, info: CustomerInfo) -> Customer:
        """Return the matching customer, updated, or a newly created one."""
        info = info.normalized()
        customer = self.find(info)
        if customer is None:
            customer = Customer(
                name=info.name,
                phone=info.phone or None,
                email=info.email or None,
                address=info.address or None,
                created_by_id=self.actor_id,
            )
            self.session.add(customer)
            self.session.flush()
            logger.info("customer_created", extra={"customer_id": str(customer.id)})
            return customer

        changed = False
        for field_name in ("name", "phone", "email", "address"):
            value = getattr(info, field_name)
            if value and getattr(customer, field_name) != value:
                setattr(customer, field_name, value)
                changed = True
        if changed:
            customer.updated_by_id = self.actor_id
            self.session.flush()
            logger.info("customer_updated", extra={"customer_id": str(customer.id)})
        return customer

    def find(self, info: CustomerInfo) -> Customer | None:
        info = info.normalized()
        if info.phone:
            match = self._first(Customer.phone == info.phone)
            if match is not None:
                return match
        if info.email:
            match = self._first(func.lower(Customer.email) == info.email.lower())
            if match is not None:
                return match
        if info.name:
            return self._first(func.lower(Customer.name) == info.name.lower())
        return None

    def get(self, customer_id: UUID) -> CustomerRecord:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", str(customer_id))
        return CustomerRecord(
            id=customer.id,
            name=customer.name,
            phone=customer.phone,
            email=customer.email,
            address=customer.address,
        )

    def _first(self, criterion) -> Customer | None:
        # Duplicates are tolerated; the oldest record wins
        return self.session.execute(
            select(Customer)
            .where(criterion)
            .order_by(Customer.created_at, Customer.id)
            .limit(1)
        ).scalar_one_or_none()
