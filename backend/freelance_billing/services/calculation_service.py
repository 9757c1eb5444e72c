"""
Service Layer per il Calcolo degli Importi
Progetto: Freelance Manager (Gestionale Freelance)

Calcolo del totale di riga e dei totali di documento.

Regole:
- Lo sconto di riga è un importo assoluto; la base imponibile non scende mai sotto zero
- L'imposta di riga si applica alla base già scontata
- Arrotondamento half-to-even, una sola volta alla fine, alle cifre
  decimali della valuta del documento
- Imposta e sconto a livello documento si applicano dopo la somma delle righe
"""

import logging
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from freelance_billing.core.config import settings
from freelance_billing.core.exceptions import BusinessValidationError
from freelance_billing.schemas.billing import DocumentTotals, LineItem

# Logger per questo modulo
logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def quantize_amount(value: Decimal, currency: Optional[str] = None) -> Decimal:
    """
    Arrotonda un importo alle cifre decimali della valuta (half-to-even).

    Args:
        value: Importo da arrotondare
        currency: Codice valuta (default: settings.default_currency)

    Returns:
        Decimal: Importo arrotondato
    """
    exponent = ONE.scaleb(-settings.minor_units_for(currency))
    return Decimal(value).quantize(exponent, rounding=ROUND_HALF_EVEN)


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Converte un valore numerico in Decimal senza passare dalla rappresentazione float."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise BusinessValidationError(
                f"Valore non numerico per '{field_name}': {value!r}",
                extra={"field": field_name},
            )
    if not result.is_finite():
        raise BusinessValidationError(
            f"Valore non finito per '{field_name}': {value!r}",
            extra={"field": field_name},
        )
    return result


def validate_item_values(
    quantity: Any,
    unit_price: Any,
    tax_rate: Any,
    discount: Any,
) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """
    Valida e normalizza i valori di una riga.

    Raises:
        BusinessValidationError: quantità, prezzo o sconto negativi,
            aliquota fuori dall'intervallo 0-1
    """
    quantity = to_decimal(quantity, "quantity")
    unit_price = to_decimal(unit_price, "unit_price")
    tax_rate = to_decimal(tax_rate, "tax_rate")
    discount = to_decimal(discount, "discount")

    if quantity < 0:
        raise BusinessValidationError(
            "La quantità non può essere negativa", extra={"field": "quantity"}
        )
    if unit_price < 0:
        raise BusinessValidationError(
            "Il prezzo unitario non può essere negativo", extra={"field": "unit_price"}
        )
    if tax_rate < 0 or tax_rate > 1:
        raise BusinessValidationError(
            "L'aliquota deve essere compresa tra 0 e 1", extra={"field": "tax_rate"}
        )
    if discount < 0:
        raise BusinessValidationError(
            "Lo sconto non può essere negativo", extra={"field": "discount"}
        )
    return quantity, unit_price, tax_rate, discount


# -------------------------------------------------------------------
# LineItem Calculator
# -------------------------------------------------------------------

def compute_item_total(
    quantity: Any,
    unit_price: Any,
    tax_rate: Any = ZERO,
    discount: Any = ZERO,
    currency: Optional[str] = None,
) -> Decimal:
    """
    Calcola il totale di una riga.

    Formula: max(0, quantity * unit_price - discount) * (1 + tax_rate)

    Args:
        quantity: Quantità (>= 0)
        unit_price: Prezzo unitario (>= 0)
        tax_rate: Aliquota come frazione (0-1)
        discount: Sconto assoluto (>= 0)
        currency: Valuta del documento, determina le cifre decimali

    Returns:
        Decimal: Totale riga arrotondato

    Raises:
        BusinessValidationError: input fuori dominio
    """
    quantity, unit_price, tax_rate, discount = validate_item_values(
        quantity, unit_price, tax_rate, discount
    )
    base = max(ZERO, quantity * unit_price - discount)
    return quantize_amount(base * (ONE + tax_rate), currency)


def build_line_item(
    unit_price: Any,
    sort_order: int,
    quantity: Any = ONE,
    tax_rate: Any = ZERO,
    discount: Any = ZERO,
    description: str = "",
) -> LineItem:
    """
    Crea una LineItem validando i valori con le regole di dominio.

    Returns:
        LineItem: Riga validata

    Raises:
        BusinessValidationError: input fuori dominio
    """
    quantity, unit_price, tax_rate, discount = validate_item_values(
        quantity, unit_price, tax_rate, discount
    )
    if sort_order < 0:
        raise BusinessValidationError(
            "sort_order non può essere negativo", extra={"field": "sort_order"}
        )
    return LineItem(
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        tax_rate=tax_rate,
        discount=discount,
        sort_order=sort_order,
    )


# -------------------------------------------------------------------
# Document Totals Aggregator
# -------------------------------------------------------------------

def compute_document_totals(
    items: Iterable[LineItem],
    document_tax: Any = ZERO,
    document_discount: Any = ZERO,
    currency: Optional[str] = None,
) -> DocumentTotals:
    """
    Calcola i totali di un documento.

    - subtotal = somma dei totali di riga (già arrotondati singolarmente)
    - total_amount = max(0, subtotal - document_discount) + document_tax

    Il risultato non dipende dall'ordine delle righe.

    Args:
        items: Righe del documento
        document_tax: Imposta assoluta a livello documento
        document_discount: Sconto assoluto a livello documento
        currency: Valuta del documento

    Returns:
        DocumentTotals: subtotal, tax_amount, discount_amount, total_amount

    Raises:
        BusinessValidationError: righe non valide o importi di documento negativi
    """
    document_tax = to_decimal(document_tax, "tax_amount")
    document_discount = to_decimal(document_discount, "discount_amount")
    if document_tax < 0:
        raise BusinessValidationError(
            "L'imposta a livello documento non può essere negativa",
            extra={"field": "tax_amount"},
        )
    if document_discount < 0:
        raise BusinessValidationError(
            "Lo sconto a livello documento non può essere negativo",
            extra={"field": "discount_amount"},
        )

    subtotal = sum(
        (
            compute_item_total(
                item.quantity, item.unit_price, item.tax_rate, item.discount, currency
            )
            for item in items
        ),
        ZERO,
    )
    subtotal = quantize_amount(subtotal, currency)
    total_amount = quantize_amount(
        max(ZERO, subtotal - document_discount) + document_tax, currency
    )

    return DocumentTotals(
        subtotal=subtotal,
        tax_amount=quantize_amount(document_tax, currency),
        discount_amount=quantize_amount(document_discount, currency),
        total_amount=total_amount,
    )
