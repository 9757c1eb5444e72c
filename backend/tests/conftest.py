"""
Pytest configuration and fixtures for the billing core tests.

I documenti sono snapshot pydantic reali; solo la sessione database
è un mock (AsyncMock sul modello di AsyncSession).
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from freelance_billing.schemas import (
    Client,
    Invoice,
    InvoiceStatus,
    LineItem,
    Payment,
    PaymentStatus,
    Project,
    Quote,
    QuoteStatus,
)


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    return db


# ============================================================
# Fixtures per orologio e identità
# ============================================================


@pytest.fixture
def today():
    return date(2025, 6, 15)


@pytest.fixture
def now(today):
    return datetime(today.year, today.month, today.day, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def client():
    """Cliente attivo di esempio."""
    return Client(company_name="Acme Srl", contact_name="Mario Rossi", email="mario@acme.it")


# ============================================================
# Factory per documenti
# ============================================================


def make_item(unit_price, sort_order=0, quantity=1, tax_rate=0, discount=0, description="Sviluppo"):
    return LineItem(
        description=description,
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(unit_price)),
        tax_rate=Decimal(str(tax_rate)),
        discount=Decimal(str(discount)),
        sort_order=sort_order,
    )


def make_payment(amount, payment_date, status=PaymentStatus.COMPLETED, **kwargs):
    return Payment(
        amount=Decimal(str(amount)),
        payment_date=payment_date,
        status=status,
        **kwargs,
    )


@pytest.fixture
def invoice_factory(user_id, client, today):
    """
    Crea fatture con una sola riga dell'importo richiesto.

    Default: fattura inviata da 1000.00 USD, emessa oggi, scadenza a 30 giorni.
    Con una scadenza passata la fattura risulta emessa alla data di scadenza.
    """
    def _make(total="1000.00", status=InvoiceStatus.SENT, **overrides):
        data = {
            "user_id": user_id,
            "client_id": client.id,
            "number": "INV-0001",
            "title": "Sito web",
            "items": [make_item(total)],
            "status": status,
            "issue_date": today,
            "due_date": today + timedelta(days=30),
        }
        data.update(overrides)
        if "issue_date" not in overrides:
            # Fatture già scadute: emesse alla data di scadenza
            data["issue_date"] = min(today, data["due_date"])
        return Invoice(**data)

    return _make


@pytest.fixture
def quote_factory(user_id, client, today):
    """Crea preventivi con una sola riga; default: draft da 500.00 valido 30 giorni."""
    def _make(total="500.00", status=QuoteStatus.DRAFT, **overrides):
        data = {
            "user_id": user_id,
            "client_id": client.id,
            "number": "Q-0001",
            "title": "Redesign",
            "items": [make_item(total)],
            "status": status,
            "valid_until": today + timedelta(days=30),
        }
        data.update(overrides)
        return Quote(**data)

    return _make


@pytest.fixture
def project_factory(client):
    def _make(**overrides):
        data = {"client_id": client.id, "name": "Progetto"}
        data.update(overrides)
        return Project(**data)

    return _make
