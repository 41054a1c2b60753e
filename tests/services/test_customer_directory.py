"""Tests for customer find-or-create at checkout."""

from uuid import uuid4

import pytest

from retail_kernel.domain.cart import CustomerInfo
from retail_kernel.exceptions import NotFoundError
from retail_kernel.services.customer_directory import CustomerDirectory


@pytest.fixture
def directory(session, actor_id):
    d = CustomerDirectory(session, actor_id)
    yield d
    session.rollback()


class TestCustomerDirectory:

    def test_creates_when_unknown(self, directory):
        customer = directory.upsert(CustomerInfo(name=" Ada ", phone="555-0100"))
        record = directory.get(customer.id)
        assert record.name == "Ada"
        assert record.phone == "555-0100"
        assert record.email is None

    def test_matches_by_phone_first(self, directory):
        by_phone = directory.upsert(CustomerInfo(name="Ada", phone="555-0100"))
        directory.upsert(CustomerInfo(name="Grace", email="grace@example.com"))

        match = directory.upsert(CustomerInfo(name="Grace", phone="555-0100"))

        assert match.id == by_phone.id
        assert match.name == "Grace"

    def test_matches_email_case_insensitively(self, directory):
        created = directory.upsert(CustomerInfo(name="Ada", email="Ada@Example.com"))
        match = directory.find(CustomerInfo(email="ada@example.COM"))
        assert match is not None and match.id == created.id

    def test_matches_name_last(self, directory):
        created = directory.upsert(CustomerInfo(name="Ada Lovelace"))
        assert directory.find(CustomerInfo(name="ada lovelace")).id == created.id
        assert directory.find(CustomerInfo(name="Ada")) is None

    def test_empty_fields_do_not_overwrite(self, directory):
        created = directory.upsert(
            CustomerInfo(name="Ada", phone="555-0100", address="1 Main St")
        )
        directory.upsert(CustomerInfo(phone="555-0100"))
        record = directory.get(created.id)
        assert record.name == "Ada"
        assert record.address == "1 Main St"

    def test_get_unknown(self, directory):
        with pytest.raises(NotFoundError):
            directory.get(uuid4())
