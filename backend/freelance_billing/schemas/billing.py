"""
Schemas Pydantic per i Documenti di Fatturazione
Progetto: Freelance Manager (Gestionale Freelance)

Contiene:
- Enums: QuoteStatus, InvoiceStatus, PaymentStatus, PaymentMethod, QuoteHistoryAction
- LineItem: riga di preventivo/fattura
- Payment: pagamento registrato su una fattura
- QuoteHistoryEntry: voce dello storico di un preventivo
- BillingDocument: forma comune di Quote e Invoice
- Risultati del registro pagamenti (LedgerResult, OverpaymentWarning)
- Riepiloghi sintetici (InvoiceSummary, QuoteSummary)

Tutti i documenti sono snapshot immutabili (frozen): ogni modifica
restituisce una nuova istanza tramite model_copy().
I totali sono computed field e non possono essere impostati a mano.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class QuoteStatus(str, Enum):
    """Stati persistiti di un preventivo."""
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class InvoiceStatus(str, Enum):
    """Stati persistiti di una fattura."""
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Stati di un pagamento. Solo COMPLETED concorre all'incassato."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Metodi di pagamento supportati."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    PAYPAL = "paypal"
    CHECK = "check"
    OTHER = "other"


class QuoteHistoryAction(str, Enum):
    """Azioni registrate nello storico di un preventivo."""
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DocumentType(str, Enum):
    """Tipo di documento di fatturazione."""
    QUOTE = "quote"
    INVOICE = "invoice"


# -------------------------------------------------------------------
# Matrici delle transizioni di stato valide
# -------------------------------------------------------------------

# Nota: la validazione delle transizioni avviene nel service layer (lifecycle_service.py)
# Queste matrici sono definite qui come unica source of truth e importate dai service.
# EXPIRED e OVERDUE sono anche derivati a runtime dalla data di riferimento.
QUOTE_TRANSITIONS: dict[QuoteStatus, list[QuoteStatus]] = {
    QuoteStatus.DRAFT: [QuoteStatus.SENT, QuoteStatus.EXPIRED],
    QuoteStatus.SENT: [QuoteStatus.VIEWED, QuoteStatus.EXPIRED],
    QuoteStatus.VIEWED: [
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
    ],
    QuoteStatus.ACCEPTED: [],  # Stato finale
    QuoteStatus.REJECTED: [],  # Stato finale
    QuoteStatus.EXPIRED: [],  # Stato finale
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
    InvoiceStatus.SENT: [
        InvoiceStatus.VIEWED,
        InvoiceStatus.PARTIAL,
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.VIEWED: [
        InvoiceStatus.PARTIAL,
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.PARTIAL: [
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.OVERDUE: [
        InvoiceStatus.PARTIAL,
        InvoiceStatus.PAID,
        InvoiceStatus.CANCELLED,
    ],
    InvoiceStatus.PAID: [],  # Stato finale (le note restano modificabili)
    InvoiceStatus.CANCELLED: [],  # Stato finale
}

# Stati in cui il registro pagamenti accetta mutazioni
PAYABLE_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {
        InvoiceStatus.SENT,
        InvoiceStatus.VIEWED,
        InvoiceStatus.PARTIAL,
        InvoiceStatus.OVERDUE,
    }
)


def _normalize_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("La valuta deve essere un codice ISO 4217 di 3 lettere")
    return v


# -------------------------------------------------------------------
# Schemas per LineItem
# -------------------------------------------------------------------

class LineItem(BaseModel):
    """
    Riga di un documento di fatturazione.

    Attributes:
        description: Descrizione della prestazione
        quantity: Quantità (ore, pezzi, ...)
        unit_price: Prezzo unitario
        tax_rate: Aliquota come frazione (0.22 = 22%)
        discount: Sconto assoluto sulla riga
        sort_order: Chiave di ordinamento univoca nel documento
    """

    description: str = Field(
        default="",
        max_length=500,
        description="Descrizione della riga",
    )
    quantity: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Quantità",
    )
    unit_price: Decimal = Field(
        ...,
        ge=0,
        description="Prezzo unitario",
        serialization_alias="unitPrice",
    )
    tax_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=1,
        description="Aliquota della riga espressa come frazione (0-1)",
        serialization_alias="taxRate",
    )
    discount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Sconto assoluto applicato prima dell'imposta",
    )
    sort_order: int = Field(
        ...,
        ge=0,
        description="Ordinamento della riga nel documento",
        serialization_alias="sortOrder",
    )

    model_config = ConfigDict(frozen=True, from_attributes=True)


class DocumentTotals(BaseModel):
    """Totali calcolati di un documento."""

    subtotal: Decimal = Field(..., description="Somma dei totali di riga")
    tax_amount: Decimal = Field(..., description="Imposta a livello documento")
    discount_amount: Decimal = Field(..., description="Sconto a livello documento")
    total_amount: Decimal = Field(..., description="Totale documento")

    model_config = ConfigDict(frozen=True)


# -------------------------------------------------------------------
# Schemas per Payment
# -------------------------------------------------------------------

class Payment(BaseModel):
    """
    Pagamento registrato su una fattura.

    Appartiene a una sola fattura e viene creato o rimosso solo
    tramite il registro pagamenti della fattura stessa.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="UUID del pagamento")
    amount: Decimal = Field(..., description="Importo del pagamento")
    currency: Optional[str] = Field(
        default=None,
        description="Valuta (se assente si usa quella della fattura)",
    )
    payment_date: date = Field(
        ...,
        description="Data pagamento",
        serialization_alias="paymentDate",
    )
    status: PaymentStatus = Field(
        default=PaymentStatus.COMPLETED,
        description="Stato del pagamento",
    )
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.BANK_TRANSFER,
        description="Metodo di pagamento",
        serialization_alias="paymentMethod",
    )
    transaction_id: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Riferimento transazione (CRO, id PayPal, ...)",
        serialization_alias="transactionId",
    )
    notes: Optional[str] = Field(default=None, description="Note aggiuntive")

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_currency(v)


# -------------------------------------------------------------------
# Schemas per lo storico dei preventivi
# -------------------------------------------------------------------

class QuoteHistoryEntry(BaseModel):
    """Voce dello storico di un preventivo, aggiunta a ogni transizione."""

    action: QuoteHistoryAction = Field(..., description="Azione registrata")
    description: str = Field(default="", max_length=255, description="Descrizione leggibile")
    from_status: QuoteStatus = Field(
        ...,
        description="Stato effettivo di partenza",
        serialization_alias="fromStatus",
    )
    created_at: datetime = Field(
        ...,
        description="Data/ora dell'azione",
        serialization_alias="createdAt",
    )

    model_config = ConfigDict(frozen=True, from_attributes=True)


# -------------------------------------------------------------------
# Schemas per BillingDocument
# -------------------------------------------------------------------

class BillingDocument(BaseModel):
    """
    Forma comune di preventivi e fatture.

    Le righe sono mantenute ordinate per sort_order. Imposta e sconto
    a livello documento sono importi assoluti applicati dopo la somma
    delle righe.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="UUID del documento")
    user_id: uuid.UUID = Field(..., description="UUID del proprietario")
    client_id: uuid.UUID = Field(..., description="UUID del cliente")
    project_id: Optional[uuid.UUID] = Field(default=None, description="UUID del progetto")
    number: str = Field(default="", max_length=50, description="Numero documento")
    title: str = Field(default="", max_length=255, description="Titolo")
    items: list[LineItem] = Field(default_factory=list, description="Righe del documento")
    tax_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Imposta a livello documento",
    )
    discount_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Sconto a livello documento",
    )
    currency: str = Field(default="USD", description="Valuta ISO 4217")
    notes: Optional[str] = Field(default=None, description="Note (modificabili in ogni stato)")
    terms: Optional[str] = Field(default=None, description="Condizioni")
    version: int = Field(
        default=0,
        ge=0,
        description="Versione per concorrenza ottimistica (0 = mai salvato)",
    )
    created_at: Optional[datetime] = Field(default=None, description="Data/ora creazione")
    updated_at: Optional[datetime] = Field(default=None, description="Data/ora ultimo aggiornamento")
    sent_at: Optional[datetime] = Field(default=None, description="Data/ora invio")
    viewed_at: Optional[datetime] = Field(default=None, description="Data/ora prima visualizzazione")

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _normalize_currency(v)

    @field_validator("items")
    @classmethod
    def sort_items(cls, v: list[LineItem]) -> list[LineItem]:
        """Ordina le righe per sort_order e verifica l'univocità."""
        orders = [item.sort_order for item in v]
        if len(orders) != len(set(orders)):
            raise ValueError("sort_order deve essere univoco all'interno del documento")
        return sorted(v, key=lambda item: item.sort_order)

    # -------------------------------------------------------------------
    # Computed Fields
    # -------------------------------------------------------------------
    @computed_field
    @property
    def totals(self) -> DocumentTotals:
        """Totali ricalcolati da righe e importi a livello documento."""
        from freelance_billing.services.calculation_service import compute_document_totals

        return compute_document_totals(
            self.items, self.tax_amount, self.discount_amount, self.currency
        )

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        """Somma dei totali di riga."""
        return self.totals.subtotal

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        """Totale documento."""
        return self.totals.total_amount


class Quote(BillingDocument):
    """Preventivo."""

    status: QuoteStatus = Field(default=QuoteStatus.DRAFT, description="Stato persistito")
    valid_until: Optional[date] = Field(
        default=None,
        description="Data di validità (oltre questa data il preventivo è scaduto)",
        serialization_alias="validUntil",
    )
    accepted_at: Optional[datetime] = Field(default=None, description="Data/ora accettazione")
    rejected_at: Optional[datetime] = Field(default=None, description="Data/ora rifiuto")
    expired_at: Optional[datetime] = Field(default=None, description="Data/ora scadenza persistita")
    history: list[QuoteHistoryEntry] = Field(
        default_factory=list,
        description="Storico delle azioni, in ordine cronologico",
    )


class Invoice(BillingDocument):
    """
    Fattura.

    L'incassato e il residuo sono derivati dai pagamenti completati.
    Un residuo negativo indica un pagamento in eccesso.
    """

    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, description="Stato persistito")
    quote_id: Optional[uuid.UUID] = Field(default=None, description="Preventivo di origine")
    issue_date: date = Field(..., description="Data emissione")
    due_date: date = Field(..., description="Data scadenza pagamento")
    paid_date: Optional[date] = Field(default=None, description="Data saldo")
    cancelled_at: Optional[datetime] = Field(default=None, description="Data/ora annullamento")
    payments: list[Payment] = Field(default_factory=list, description="Pagamenti registrati")

    @model_validator(mode="after")
    def validate_dates(self):
        """Valida che la scadenza non preceda la data di emissione."""
        if self.due_date < self.issue_date:
            raise ValueError(
                f"La data di scadenza ({self.due_date}) non può precedere "
                f"la data di emissione ({self.issue_date})"
            )
        return self

    @computed_field
    @property
    def amount_paid(self) -> Decimal:
        """Somma dei soli pagamenti completati."""
        from freelance_billing.services.calculation_service import quantize_amount

        paid = sum(
            (p.amount for p in self.payments if p.status == PaymentStatus.COMPLETED),
            Decimal("0"),
        )
        return quantize_amount(paid, self.currency)

    @computed_field
    @property
    def balance_due(self) -> Decimal:
        """Residuo da incassare (negativo in caso di pagamento in eccesso)."""
        return self.total_amount - self.amount_paid

    @computed_field
    @property
    def display_balance_due(self) -> Decimal:
        """Residuo per la visualizzazione, mai negativo."""
        from freelance_billing.services.calculation_service import quantize_amount

        if self.balance_due < 0:
            return quantize_amount(Decimal("0"), self.currency)
        return self.balance_due

    @property
    def is_overpaid(self) -> bool:
        """True se l'incassato supera il totale."""
        return self.balance_due < 0


# -------------------------------------------------------------------
# Risultati del Registro Pagamenti
# -------------------------------------------------------------------

class OverpaymentWarning(BaseModel):
    """
    Condizione non bloccante: l'incassato supera il totale fattura.

    La mutazione viene comunque applicata e la fattura risulta pagata.
    """

    error_code: str = Field(default="OVERPAYMENT", description="Codice condizione")
    detail: str = Field(..., description="Messaggio leggibile")
    invoice_id: uuid.UUID = Field(..., description="UUID della fattura")
    overpaid_amount: Decimal = Field(..., gt=0, description="Importo pagato in eccesso")

    model_config = ConfigDict(frozen=True)


class LedgerResult(BaseModel):
    """Esito di una mutazione del registro pagamenti."""

    invoice: Invoice = Field(..., description="Nuovo snapshot della fattura")
    warnings: list[OverpaymentWarning] = Field(
        default_factory=list,
        description="Condizioni non bloccanti da mostrare al chiamante",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class InvoiceSummary(BaseModel):
    """Riepilogo sintetico di una fattura per elenchi e card."""

    id: uuid.UUID
    number: str
    title: str
    client_id: uuid.UUID
    status: InvoiceStatus = Field(..., description="Stato persistito")
    effective_status: InvoiceStatus = Field(
        ...,
        description="Stato effettivo alla data di riferimento",
        serialization_alias="effectiveStatus",
    )
    issue_date: date
    due_date: date
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    is_overdue: bool
    is_partially_paid: bool
    item_count: int
    payment_count: int

    model_config = ConfigDict(frozen=True)


class QuoteSummary(BaseModel):
    """Riepilogo sintetico di un preventivo per elenchi e card."""

    id: uuid.UUID
    number: str
    title: str
    client_id: uuid.UUID
    status: QuoteStatus = Field(..., description="Stato persistito")
    effective_status: QuoteStatus = Field(
        ...,
        description="Stato effettivo alla data di riferimento",
        serialization_alias="effectiveStatus",
    )
    total_amount: Decimal
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    valid_until: Optional[date] = None
    is_expired: bool
    item_count: int

    model_config = ConfigDict(frozen=True)
