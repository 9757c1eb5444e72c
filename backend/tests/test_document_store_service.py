"""
Tests for the document store (optimistic concurrency).

I test unitari usano il mock di AsyncSession; la classe di integrazione
usa un database SQLite temporaneo tramite aiosqlite.
"""

import asyncio
import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_payment
from freelance_billing.core.database import create_engine, create_session_factory, init_db
from freelance_billing.core.exceptions import ConflictError, NotFoundError
from freelance_billing.models import BillingDocumentRecord
from freelance_billing.schemas import (
    DocumentType,
    Invoice,
    InvoiceStatus,
    QuoteHistoryAction,
    QuoteStatus,
)
from freelance_billing.services.document_store_service import document_store
from freelance_billing.services.lifecycle_service import send_quote, view_quote
from freelance_billing.services.numbering_service import next_invoice_number
from freelance_billing.services.payment_service import record_payment


# ============================================================
# Tests with mocked session
# ============================================================


class TestDocumentStoreUnit:
    """Tests for DocumentStoreService with a mocked AsyncSession."""

    def test_insert_new_document(self, mock_db, invoice_factory):
        """Test snapshot mai salvato: INSERT con versione 1."""
        invoice = invoice_factory()

        saved = asyncio.run(document_store.save_invoice(mock_db, invoice))

        assert saved.version == 1
        assert invoice.version == 0
        mock_db.add.assert_called_once()
        record = mock_db.add.call_args.args[0]
        assert isinstance(record, BillingDocumentRecord)
        assert record.document_type == "invoice"
        assert record.version == 1
        assert record.total_amount == Decimal("1000.00")
        assert "total_amount" not in record.payload
        mock_db.flush.assert_awaited_once()

    def test_update_with_current_version(self, mock_db, invoice_factory):
        """Test UPDATE riuscito: versione incrementata."""
        mock_db.execute.return_value = MagicMock(rowcount=1)
        invoice = invoice_factory(version=3)

        saved = asyncio.run(document_store.save_invoice(mock_db, invoice))

        assert saved.version == 4
        mock_db.execute.assert_awaited_once()
        mock_db.add.assert_not_called()

    def test_update_with_stale_version(self, mock_db, quote_factory):
        """Test nessuna riga aggiornata: ConflictError."""
        mock_db.execute.return_value = MagicMock(rowcount=0)
        quote = quote_factory(version=2)

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(document_store.save_quote(mock_db, quote))

        assert exc_info.value.status_code == 409
        assert exc_info.value.extra["version"] == 2

    def test_integrity_error_becomes_conflict(self, mock_db, invoice_factory):
        """Test vincolo violato in inserimento: rollback e ConflictError."""
        mock_db.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(ConflictError):
            asyncio.run(document_store.save_invoice(mock_db, invoice_factory()))

        mock_db.rollback.assert_awaited_once()

    def test_get_missing_document(self, mock_db):
        """Test documento inesistente: NotFoundError."""
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = result

        with pytest.raises(NotFoundError):
            asyncio.run(document_store.get_invoice(mock_db, uuid.uuid4()))


# ============================================================
# Integration tests (SQLite + aiosqlite)
# ============================================================


class TestDocumentStoreIntegration:
    """Round trip through a temporary SQLite database."""

    @pytest.fixture
    def session_factory(self, tmp_path):
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
        asyncio.run(init_db(engine))
        yield create_session_factory(engine)
        asyncio.run(engine.dispose())

    def test_save_and_reload_invoice(self, session_factory, invoice_factory, today):
        """Test salvataggio e rilettura di una fattura con pagamenti."""
        invoice = record_payment(invoice_factory(total="1000"), make_payment("250", today)).invoice

        async def scenario():
            async with session_factory() as db:
                saved = await document_store.save_invoice(db, invoice)
                await db.commit()
            async with session_factory() as db:
                return saved, await document_store.get_invoice(db, invoice.id)

        saved, loaded = asyncio.run(scenario())

        assert isinstance(loaded, Invoice)
        assert loaded == saved
        assert loaded.version == 1
        assert loaded.status == InvoiceStatus.PARTIAL
        assert loaded.amount_paid == Decimal("250.00")
        assert loaded.payments[0].payment_date == today

    def test_concurrent_writes_one_wins(self, session_factory, invoice_factory, now):
        """Test due scritture sulla stessa versione: solo la prima riesce."""
        invoice = invoice_factory(status=InvoiceStatus.DRAFT)

        async def scenario():
            async with session_factory() as db:
                stored = await document_store.save_invoice(db, invoice)
                await db.commit()

            first = stored.model_copy(update={"notes": "prima"})
            second = stored.model_copy(update={"status": InvoiceStatus.SENT, "sent_at": now})

            async with session_factory() as db:
                winner = await document_store.save_invoice(db, first)
                await db.commit()
            async with session_factory() as db:
                with pytest.raises(ConflictError):
                    await document_store.save_invoice(db, second)
            async with session_factory() as db:
                return winner, await document_store.get_invoice(db, invoice.id)

        winner, current = asyncio.run(scenario())

        assert winner.version == 2
        assert current.version == 2
        assert current.notes == "prima"
        assert current.status == InvoiceStatus.DRAFT

    def test_duplicate_insert_conflicts(self, session_factory, quote_factory):
        """Test doppio inserimento dello stesso snapshot: ConflictError."""
        quote = quote_factory()

        async def scenario():
            async with session_factory() as db:
                await document_store.save_quote(db, quote)
                await db.commit()
            async with session_factory() as db:
                with pytest.raises(ConflictError):
                    await document_store.save_quote(db, quote)

        asyncio.run(scenario())

    def test_list_filters_by_type_and_client(
        self, session_factory, invoice_factory, quote_factory, client, today
    ):
        """Test elenco per tipo documento e cliente."""
        other_client = uuid.uuid4()
        documents = [
            invoice_factory(),
            invoice_factory(client_id=other_client, due_date=today + timedelta(days=60)),
            quote_factory(status=QuoteStatus.SENT),
        ]

        async def scenario():
            async with session_factory() as db:
                for document in documents:
                    if isinstance(document, Invoice):
                        await document_store.save_invoice(db, document)
                    else:
                        await document_store.save_quote(db, document)
                await db.commit()
            async with session_factory() as db:
                return (
                    await document_store.list_invoices(db),
                    await document_store.list_invoices(db, client_id=client.id),
                    await document_store.list_quotes(db),
                )

        all_invoices, client_invoices, quotes = asyncio.run(scenario())

        assert len(all_invoices) == 2
        assert [i.client_id for i in client_invoices] == [client.id]
        assert len(quotes) == 1
        assert quotes[0].status == QuoteStatus.SENT

    def test_session_scope_commits(self, tmp_path, invoice_factory):
        """Test session_scope: commit all'uscita, engine creato alla prima richiesta."""
        from freelance_billing.core import database

        url = f"sqlite+aiosqlite:///{tmp_path / 'scope.db'}"
        invoice = invoice_factory()

        async def scenario():
            with patch.object(database, "create_engine", lambda: create_engine(url)):
                await init_db(database.get_engine())
                async with database.session_scope() as db:
                    await document_store.save_invoice(db, invoice)
                async with database.session_scope() as db:
                    loaded = await document_store.get_invoice(db, invoice.id)
                await database.close_db()
            return loaded

        loaded = asyncio.run(scenario())

        assert loaded.version == 1
        assert database._engine is None

    def test_invoice_id_is_not_a_quote(self, session_factory, invoice_factory):
        """Test una fattura non è rileggibile come preventivo."""
        invoice = invoice_factory()

        async def scenario():
            async with session_factory() as db:
                await document_store.save_invoice(db, invoice)
                await db.commit()
                with pytest.raises(NotFoundError):
                    await document_store.get_quote(db, invoice.id)

        asyncio.run(scenario())

    def test_list_numbers_by_prefix(self, session_factory, invoice_factory, quote_factory, today):
        """Test numeri assegnati filtrati per tipo e prefisso, con il successivo."""
        documents = [
            invoice_factory(number="INV-202506-001"),
            invoice_factory(number="INV-202506-002"),
            invoice_factory(number="INV-202505-007"),
            invoice_factory(number=""),
            quote_factory(number="QUO-202506-004"),
        ]

        async def scenario():
            async with session_factory() as db:
                for document in documents:
                    if isinstance(document, Invoice):
                        await document_store.save_invoice(db, document)
                    else:
                        await document_store.save_quote(db, document)
                await db.commit()
            async with session_factory() as db:
                return await document_store.list_numbers(
                    db, DocumentType.INVOICE, prefix="INV-202506-"
                )

        numbers = asyncio.run(scenario())

        assert numbers == ["INV-202506-002", "INV-202506-001"]
        assert next_invoice_number(today, numbers) == "INV-202506-003"

    def test_quote_history_round_trip(self, session_factory, quote_factory, now):
        """Test lo storico del preventivo è salvato con lo snapshot."""
        quote = view_quote(send_quote(quote_factory(), now), now + timedelta(hours=1))

        async def scenario():
            async with session_factory() as db:
                await document_store.save_quote(db, quote)
                await db.commit()
            async with session_factory() as db:
                return await document_store.get_quote(db, quote.id)

        loaded = asyncio.run(scenario())

        assert loaded.history == quote.history
        assert loaded.history[-1].action == QuoteHistoryAction.VIEWED
