"""
Unit tests for document editing and derivation.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import make_item, make_payment
from freelance_billing.core.config import settings
from freelance_billing.core.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from freelance_billing.schemas import InvoiceStatus, QuoteStatus
from freelance_billing.services.document_service import document_service
from freelance_billing.services.payment_service import record_payment


# ============================================================
# Tests for line item editing
# ============================================================


class TestItemEditing:
    """Tests for draft-only item editing."""

    def test_add_item_recomputes_totals(self, invoice_factory, user_id, now):
        """Test aggiunta riga: i totali si ricalcolano."""
        invoice = invoice_factory(total="100", status=InvoiceStatus.DRAFT)

        updated = document_service.add_item(
            invoice, make_item("50", sort_order=1), user_id=user_id, now=now
        )

        assert updated.total_amount == Decimal("150.00")
        assert updated.updated_at == now
        assert invoice.total_amount == Decimal("100.00")

    def test_add_item_without_sort_order_is_appended(self, quote_factory, user_id):
        """Test riga senza sort_order accodata in fondo."""
        quote = quote_factory(items=[make_item("10", 0), make_item("20", 5)])

        updated = document_service.add_item(
            quote, {"unit_price": "30", "description": "Hosting"}, user_id=user_id
        )

        assert [i.sort_order for i in updated.items] == [0, 5, 6]
        assert updated.items[-1].description == "Hosting"

    def test_add_item_keeps_sort_order(self, quote_factory, user_id):
        """Test le righe restano ordinate per sort_order."""
        quote = quote_factory(items=[make_item("10", 0), make_item("20", 5)])

        updated = document_service.add_item(quote, make_item("30", 2), user_id=user_id)

        assert [i.sort_order for i in updated.items] == [0, 2, 5]

    def test_duplicate_sort_order_rejected(self, quote_factory, user_id):
        """Test sort_order già usato."""
        quote = quote_factory()

        with pytest.raises(ValidationError) as exc_info:
            document_service.add_item(quote, make_item("30", 0), user_id=user_id)

        assert exc_info.value.extra == {"field": "sort_order"}

    def test_non_owner_rejected(self, quote_factory):
        """Test utente non proprietario."""
        quote = quote_factory()

        with pytest.raises(AuthorizationError) as exc_info:
            document_service.add_item(quote, make_item("30", 1), user_id=uuid.uuid4())

        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize(
        "status", [InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED]
    )
    def test_items_frozen_outside_draft(self, invoice_factory, user_id, status):
        """Test righe non modificabili dopo l'invio."""
        invoice = invoice_factory(status=status)

        with pytest.raises(InvalidTransitionError):
            document_service.add_item(invoice, make_item("1", 9), user_id=user_id)
        with pytest.raises(InvalidTransitionError):
            document_service.remove_item(invoice, 0, user_id=user_id)

    def test_remove_item(self, quote_factory, user_id):
        """Test rimozione riga."""
        quote = quote_factory(items=[make_item("10", 0), make_item("20", 1)])

        updated = document_service.remove_item(quote, 0, user_id=user_id)

        assert [i.sort_order for i in updated.items] == [1]
        assert updated.total_amount == Decimal("20.00")

    def test_remove_missing_item(self, quote_factory, user_id):
        """Test rimozione di una riga inesistente."""
        with pytest.raises(NotFoundError):
            document_service.remove_item(quote_factory(), 42, user_id=user_id)

    def test_replace_items(self, quote_factory, user_id):
        """Test sostituzione completa delle righe."""
        quote = quote_factory()

        updated = document_service.replace_items(
            quote, [make_item("5", 3), make_item("7", 1)], user_id=user_id
        )

        assert [i.sort_order for i in updated.items] == [1, 3]
        assert updated.subtotal == Decimal("12.00")

    def test_update_charges(self, quote_factory, user_id):
        """Test imposta e sconto a livello documento."""
        quote = quote_factory(total="500")

        updated = document_service.update_charges(
            quote, user_id=user_id, tax_amount=Decimal("10"), discount_amount=Decimal("60")
        )

        assert updated.total_amount == Decimal("450.00")

    def test_update_charges_negative_rejected(self, quote_factory, user_id):
        """Test sconto negativo a livello documento."""
        with pytest.raises(ValidationError):
            document_service.update_charges(
                quote_factory(), user_id=user_id, discount_amount=Decimal("-1")
            )


class TestNotesEditing:
    """Tests for update_notes."""

    @pytest.mark.parametrize(
        "status", [InvoiceStatus.DRAFT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED]
    )
    def test_notes_editable_in_every_status(self, invoice_factory, user_id, now, status):
        """Test note modificabili anche su fatture pagate e annullate."""
        invoice = invoice_factory(status=status)

        updated = document_service.update_notes(invoice, "Grazie!", user_id=user_id, now=now)

        assert updated.notes == "Grazie!"
        assert updated.status == status

    def test_notes_owner_only(self, invoice_factory):
        """Test note modificabili solo dal proprietario."""
        with pytest.raises(AuthorizationError):
            document_service.update_notes(invoice_factory(), "x", user_id=uuid.uuid4())


# ============================================================
# Tests for derived documents
# ============================================================


class TestDerivation:
    """Tests for duplication and invoice-from-quote."""

    def test_duplicate_invoice(self, invoice_factory, today):
        """Test duplicazione: bozza senza pagamenti con nuove date."""
        invoice = record_payment(invoice_factory(), make_payment("100", today)).invoice
        later = today + timedelta(days=10)

        copy = document_service.duplicate_invoice(invoice, today=later)

        assert copy.id != invoice.id
        assert copy.status == InvoiceStatus.DRAFT
        assert copy.title == "Sito web - Copy"
        assert copy.payments == []
        assert copy.version == 0
        assert copy.issue_date == later
        assert copy.due_date == later + timedelta(days=settings.default_payment_terms_days)
        assert copy.total_amount == invoice.total_amount

    def test_duplicate_quote(self, quote_factory, today):
        """Test duplicazione preventivo con nuova validità."""
        quote = quote_factory(status=QuoteStatus.REJECTED)

        copy = document_service.duplicate_quote(quote, today=today, validity_days=15)

        assert copy.status == QuoteStatus.DRAFT
        assert copy.valid_until == today + timedelta(days=15)
        assert copy.items == quote.items

    def test_invoice_from_accepted_quote(self, quote_factory, today):
        """Test fattura generata da preventivo accettato."""
        quote = quote_factory(
            status=QuoteStatus.ACCEPTED, currency="EUR", tax_amount=Decimal("5")
        )

        invoice = document_service.create_invoice_from_quote(quote, today=today, number="INV-9")

        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.quote_id == quote.id
        assert invoice.client_id == quote.client_id
        assert invoice.currency == "EUR"
        assert invoice.total_amount == quote.total_amount
        assert invoice.notes == "Invoice created from quote: Q-0001"
        assert invoice.number == "INV-9"

    @pytest.mark.parametrize(
        "status", [QuoteStatus.DRAFT, QuoteStatus.VIEWED, QuoteStatus.REJECTED]
    )
    def test_invoice_from_non_accepted_quote_rejected(self, quote_factory, today, status):
        """Test solo i preventivi accettati generano fatture."""
        with pytest.raises(InvalidTransitionError):
            document_service.create_invoice_from_quote(quote_factory(status=status), today=today)

    def test_generated_numbers(self, invoice_factory, quote_factory, today):
        """Test numero assente: generato dal progressivo del mese."""
        existing = ["INV-202506-003", "INV-202505-010", "QUO-202506-008"]
        accepted = quote_factory(status=QuoteStatus.ACCEPTED)

        invoice_copy = document_service.duplicate_invoice(
            invoice_factory(), today=today, existing_numbers=existing
        )
        quote_copy = document_service.duplicate_quote(
            quote_factory(), today=today, existing_numbers=existing
        )
        from_quote = document_service.create_invoice_from_quote(
            accepted, today=today, existing_numbers=[*existing, invoice_copy.number]
        )

        assert invoice_copy.number == "INV-202506-004"
        assert quote_copy.number == "QUO-202506-009"
        assert from_quote.number == "INV-202506-005"

    def test_duplicate_quote_starts_new_history(self, quote_factory, today, now):
        """Test la copia di un preventivo non eredita lo storico."""
        from freelance_billing.services.lifecycle_service import send_quote

        sent = send_quote(quote_factory(), now)

        copy = document_service.duplicate_quote(sent, today=today)

        assert len(sent.history) == 1
        assert copy.history == []

    def test_invoice_from_quote_due_before_issue_rejected(self, quote_factory, today):
        """Test scadenza precedente alla data di emissione rifiutata."""
        quote = quote_factory(status=QuoteStatus.ACCEPTED)

        with pytest.raises(ValidationError) as exc_info:
            document_service.create_invoice_from_quote(
                quote, today=today, due_date=today - timedelta(days=1)
            )

        assert exc_info.value.extra == {"field": "due_date"}


class TestInvoiceSummary:
    """Tests for summarize_invoice."""

    def test_summary_of_overdue_partial_invoice(self, invoice_factory, today):
        """Test riepilogo di una fattura parziale scaduta."""
        invoice = invoice_factory(total="1000", due_date=today - timedelta(days=5))
        invoice = record_payment(invoice, make_payment("250", today)).invoice

        summary = document_service.summarize_invoice(invoice, today)

        assert summary.status == InvoiceStatus.PARTIAL
        assert summary.effective_status == InvoiceStatus.OVERDUE
        assert summary.is_overdue
        assert summary.is_partially_paid
        assert summary.balance_due == Decimal("750.00")
        assert summary.item_count == 1
        assert summary.payment_count == 1


class TestQuoteSummary:
    """Tests for summarize_quote."""

    def test_summary_of_expired_quote(self, quote_factory, today):
        """Test preventivo inviato con validità superata: riepilogo scaduto."""
        quote = quote_factory(
            status=QuoteStatus.SENT,
            valid_until=today - timedelta(days=1),
            items=[make_item("300", sort_order=0), make_item("200", sort_order=1)],
        )

        summary = document_service.summarize_quote(quote, today)

        assert summary.status == QuoteStatus.SENT
        assert summary.effective_status == QuoteStatus.EXPIRED
        assert summary.is_expired
        assert summary.item_count == 2
        assert summary.total_amount == Decimal("500.00")

    def test_summary_of_valid_quote(self, quote_factory, today):
        """Test preventivo ancora valido: non scaduto."""
        quote = quote_factory(status=QuoteStatus.VIEWED)

        summary = document_service.summarize_quote(quote, today)

        assert summary.effective_status == QuoteStatus.VIEWED
        assert not summary.is_expired
        assert summary.valid_until == quote.valid_until
        assert summary.number == "Q-0001"


# ============================================================
# Tests for invoice dates
# ============================================================


class TestInvoiceDates:
    """Tests for the issue/due date check on Invoice."""

    def test_due_before_issue_rejected(self, invoice_factory, today):
        """Test scadenza precedente all'emissione rifiutata."""
        with pytest.raises(PydanticValidationError, match="non può precedere"):
            invoice_factory(issue_date=today, due_date=today - timedelta(days=1))

    def test_due_on_issue_date_accepted(self, invoice_factory, today):
        """Test scadenza nello stesso giorno dell'emissione consentita."""
        invoice = invoice_factory(issue_date=today, due_date=today)

        assert invoice.due_date == invoice.issue_date
