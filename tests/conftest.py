"""
Shared fixtures for the reconciliation test suite.

Every test gets a fresh in-memory SQLite database; the payment gateway and
the overdue trigger are mocks, so no external service is contacted.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TAP_SECRET_KEY", "sk_test_secret")

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from installment_recon.api.v1.endpoints.imports import get_overdue_trigger
from installment_recon.api.v1.endpoints.webhooks import get_gateway_client
from installment_recon.core.database import Base, get_db
from installment_recon.main import app
from installment_recon.models.customer import Customer
from installment_recon.models.transaction import Transaction, TransactionStatus
from installment_recon.schemas.transaction_import import ImportMapping
from installment_recon.services.gateway_client import TapGatewayClient


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()


# ---------------------------------------------------------------------------
# Seed data factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_customer(db_session):
    def _make(sequence_number, full_name="عميل تجريبي", mobile_number=None, alternate_phone=None):
        customer = Customer(
            sequence_number=sequence_number,
            full_name=full_name,
            mobile_number=mobile_number,
            alternate_phone=alternate_phone,
        )
        db_session.add(customer)
        db_session.commit()
        db_session.refresh(customer)
        return customer
    return _make


@pytest.fixture
def make_transaction(db_session):
    def _make(customer, sequence_number=None, amount="1200", remaining_balance=None,
              number_of_installments=12, start_date=date(2024, 1, 1),
              status=TransactionStatus.ACTIVE):
        amount = Decimal(amount)
        remaining = Decimal(remaining_balance) if remaining_balance is not None else amount
        transaction = Transaction(
            sequence_number=sequence_number,
            customer_id=customer.id,
            cost_price=amount,
            extra_price=Decimal(0),
            amount=amount,
            installment_amount=(amount / number_of_installments).quantize(Decimal("0.001")),
            number_of_installments=number_of_installments,
            start_date=start_date,
            remaining_balance=remaining,
            status=status,
        )
        db_session.add(transaction)
        db_session.commit()
        db_session.refresh(transaction)
        return transaction
    return _make


@pytest.fixture
def mapping():
    """Column mapping matching the Arabic import template"""
    return ImportMapping(
        customer_sequence="رقم العميل",
        sequence_number="رقم البيع",
        cost_price="سعر السلعة",
        extra_price="السعر الاضافى",
        number_of_installments="عدد الدفعات",
        start_date="تاريخ البدء",
        notes="ملاحظات",
    )


@pytest.fixture
def make_row():
    def _make(customer="1", sequence=None, cost=100, extra=20, installments=12,
              start="15/01/2024", **extra_columns):
        row = {
            "رقم العميل": customer,
            "رقم البيع": sequence,
            "سعر السلعة": cost,
            "السعر الاضافى": extra,
            "عدد الدفعات": installments,
            "تاريخ البدء": start,
            "ملاحظات": "",
        }
        row.update(extra_columns)
        return row
    return _make


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------

@pytest.fixture
def overdue_trigger():
    return MagicMock(name="overdue_trigger")


@pytest.fixture
def gateway():
    client = MagicMock(spec=TapGatewayClient)
    client.fetch.return_value = {}
    return client


@pytest.fixture
def tap_charge():
    """Build a verified Tap charge body"""
    def _make(charge_id="chg_TS01", status="CAPTURED", amount=100.5, reference=None,
              phone=None, first_name="Ahmad", last_name="Saleh", metadata=None):
        return {
            "id": charge_id,
            "object": "charge",
            "status": status,
            "amount": amount,
            "currency": "KWD",
            "reference": {"transaction": reference} if reference else {},
            "customer": {
                "first_name": first_name,
                "last_name": last_name,
                "email": "payer@example.com",
                "phone": {"country_code": "965", "number": phone} if phone else {},
            },
            "metadata": metadata or {},
        }
    return _make


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

@pytest.fixture
def client(db_session, overdue_trigger, gateway):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_overdue_trigger] = lambda: overdue_trigger
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
