"""
Unit tests for the amount calculation service.

Coprono il totale di riga, i totali di documento e l'arrotondamento
per valuta.
"""

from decimal import Decimal

import pytest

from conftest import make_item
from freelance_billing.core.exceptions import BusinessValidationError, ValidationError
from freelance_billing.services.calculation_service import (
    build_line_item,
    compute_document_totals,
    compute_item_total,
    quantize_amount,
)


# ============================================================
# Tests for LineItem total
# ============================================================


class TestItemTotal:
    """Tests for compute_item_total."""

    def test_item_total_with_tax_and_discount(self):
        """Test 3 x 100 con sconto 50 e imposta 10%: 250 imponibile, 275.00 totale."""
        total = compute_item_total(
            Decimal("3"), Decimal("100"), Decimal("0.1"), Decimal("50")
        )

        assert total == Decimal("275.00")
        assert str(total) == "275.00"

    def test_discount_exceeding_base_clamps_to_zero(self):
        """Test sconto superiore all'imponibile: totale zero, nessun errore."""
        total = compute_item_total(Decimal("1"), Decimal("40"), Decimal("0.22"), Decimal("100"))

        assert total == Decimal("0.00")

    def test_rounding_half_even(self):
        """Test arrotondamento bancario alla seconda cifra decimale."""
        # 0.125 -> 0.12, 0.135 -> 0.14
        assert compute_item_total(Decimal("1"), Decimal("0.125")) == Decimal("0.12")
        assert compute_item_total(Decimal("1"), Decimal("0.135")) == Decimal("0.14")

    def test_rounding_happens_once(self):
        """Test l'imposta si calcola sulla base non arrotondata."""
        # 3 x 0.333 = 0.999; * 1.1 = 1.0989 -> 1.10
        total = compute_item_total(Decimal("3"), Decimal("0.333"), Decimal("0.1"))

        assert total == Decimal("1.10")

    def test_zero_decimal_currency(self):
        """Test valuta senza decimali (JPY)."""
        total = compute_item_total(Decimal("3"), Decimal("333.5"), currency="JPY")

        assert total == Decimal("1000")

    def test_three_decimal_currency(self):
        """Test valuta a tre decimali (KWD)."""
        total = compute_item_total(Decimal("1"), Decimal("1.2345"), currency="KWD")

        assert total == Decimal("1.234")

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"quantity": -1, "unit_price": 10}, "quantity"),
            ({"quantity": 1, "unit_price": -10}, "unit_price"),
            ({"quantity": 1, "unit_price": 10, "tax_rate": Decimal("1.5")}, "tax_rate"),
            ({"quantity": 1, "unit_price": 10, "tax_rate": Decimal("-0.1")}, "tax_rate"),
            ({"quantity": 1, "unit_price": 10, "discount": -5}, "discount"),
        ],
    )
    def test_invalid_inputs_rejected(self, kwargs, field):
        """Test input fuori dominio sollevano ValidationError con il campo."""
        with pytest.raises(ValidationError) as exc_info:
            compute_item_total(**kwargs)

        assert exc_info.value.extra == {"field": field}
        assert exc_info.value.status_code == 422

    def test_non_numeric_input_rejected(self):
        """Test valore non numerico."""
        with pytest.raises(BusinessValidationError):
            compute_item_total("abc", Decimal("10"))

    def test_validation_error_is_value_error(self):
        """Test ValidationError è anche un ValueError."""
        with pytest.raises(ValueError):
            compute_item_total(Decimal("-1"), Decimal("10"))

    @pytest.mark.parametrize("quantity", ["0", "1", "2.5", "10"])
    def test_monotonic_in_quantity(self, quantity):
        """Test il totale non decresce all'aumentare della quantità."""
        q = Decimal(quantity)
        lower = compute_item_total(q, Decimal("19.99"), Decimal("0.22"), Decimal("5"))
        higher = compute_item_total(q + 1, Decimal("19.99"), Decimal("0.22"), Decimal("5"))

        assert lower >= 0
        assert higher >= lower

    @pytest.mark.parametrize("discount", ["0", "10", "50", "1000"])
    def test_non_increasing_in_discount(self, discount):
        """Test il totale non cresce all'aumentare dello sconto."""
        d = Decimal(discount)
        base = compute_item_total(Decimal("2"), Decimal("75"), Decimal("0.1"), d)
        more = compute_item_total(Decimal("2"), Decimal("75"), Decimal("0.1"), d + 5)

        assert 0 <= more <= base


class TestBuildLineItem:
    """Tests for build_line_item."""

    def test_build_valid_item(self):
        """Test creazione riga valida da valori non Decimal."""
        item = build_line_item(unit_price="100", sort_order=2, quantity=3, tax_rate="0.1")

        assert item.unit_price == Decimal("100")
        assert item.quantity == Decimal("3")
        assert item.sort_order == 2

    def test_build_negative_sort_order(self):
        """Test sort_order negativo rifiutato."""
        with pytest.raises(ValidationError):
            build_line_item(unit_price="10", sort_order=-1)


# ============================================================
# Tests for document totals
# ============================================================


class TestDocumentTotals:
    """Tests for compute_document_totals."""

    def test_totals_with_document_charges(self):
        """Test sconto e imposta a livello documento dopo la somma righe."""
        items = [make_item("100", 0), make_item("50", 1, quantity=2)]

        totals = compute_document_totals(items, Decimal("22"), Decimal("20"))

        assert totals.subtotal == Decimal("200.00")
        assert totals.total_amount == Decimal("202.00")
        assert totals.tax_amount == Decimal("22.00")
        assert totals.discount_amount == Decimal("20.00")

    def test_document_discount_clamps_at_zero(self):
        """Test sconto documento oltre il subtotale: resta solo l'imposta."""
        totals = compute_document_totals([make_item("30")], Decimal("5"), Decimal("100"))

        assert totals.total_amount == Decimal("5.00")

    def test_no_items(self):
        """Test documento senza righe."""
        totals = compute_document_totals([], Decimal("0"), Decimal("0"))

        assert totals.subtotal == Decimal("0.00")
        assert totals.total_amount == Decimal("0.00")

    def test_reordering_does_not_change_totals(self):
        """Test i totali non dipendono dall'ordine delle righe."""
        items = [
            make_item("10.005", 0, tax_rate="0.22"),
            make_item("99.99", 1, quantity=3, discount="7.5"),
            make_item("0.015", 2, quantity=7, tax_rate="0.04"),
        ]

        forward = compute_document_totals(items, Decimal("1.5"), Decimal("3"))
        backward = compute_document_totals(list(reversed(items)), Decimal("1.5"), Decimal("3"))

        assert forward == backward

    def test_subtotal_is_sum_of_rounded_items(self):
        """Test il subtotale somma i totali di riga già arrotondati."""
        items = [make_item("0.005", 0), make_item("0.005", 1), make_item("0.005", 2)]

        totals = compute_document_totals(items)

        # ogni riga 0.005 -> 0.00 (half-even)
        assert totals.subtotal == Decimal("0.00")

    def test_negative_document_tax_rejected(self):
        """Test imposta documento negativa."""
        with pytest.raises(ValidationError) as exc_info:
            compute_document_totals([make_item("10")], Decimal("-1"), Decimal("0"))

        assert exc_info.value.extra == {"field": "tax_amount"}

    def test_negative_document_discount_rejected(self):
        """Test sconto documento negativo."""
        with pytest.raises(ValidationError):
            compute_document_totals([make_item("10")], Decimal("0"), Decimal("-1"))

    def test_document_exposes_totals(self, invoice_factory):
        """Test i totali sono campi calcolati del documento."""
        invoice = invoice_factory(
            total="100",
            items=[make_item("100", 0, quantity=3, tax_rate="0.1", discount="50")],
            tax_amount=Decimal("5"),
        )

        assert invoice.subtotal == Decimal("275.00")
        assert invoice.total_amount == Decimal("280.00")
        assert "total_amount" in invoice.model_dump()


class TestQuantize:
    """Tests for quantize_amount."""

    def test_default_currency(self):
        """Test valuta di default a due decimali."""
        assert quantize_amount(Decimal("1.005")) == Decimal("1.00")

    def test_unknown_currency_uses_default_minor_units(self):
        """Test valuta non in tabella: cifre decimali di default."""
        assert quantize_amount(Decimal("1.019"), "EUR") == Decimal("1.02")
