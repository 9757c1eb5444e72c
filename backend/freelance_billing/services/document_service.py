"""
Service Layer per la Modifica dei Documenti
Progetto: Freelance Manager (Gestionale Freelance)

Gestisce le righe e i metadati di preventivi e fatture:
- Le righe e gli importi a livello documento sono modificabili solo in draft
- Solo il proprietario del documento può modificarlo
- Le note restano modificabili in ogni stato (anche paid e cancelled)

Include la derivazione di nuovi documenti (duplicazione, fattura da preventivo)
e il riepilogo sintetico di fatture e preventivi.
Se il numero del nuovo documento non è indicato viene generato dai numeri
già assegnati (existing_numbers), con il formato PREFISSO-YYYYMM-NNN.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, TypeVar, Union

from freelance_billing.core.config import settings
from freelance_billing.core.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from freelance_billing.schemas.billing import (
    BillingDocument,
    Invoice,
    InvoiceStatus,
    InvoiceSummary,
    LineItem,
    Quote,
    QuoteStatus,
    QuoteSummary,
)
from freelance_billing.services.calculation_service import (
    build_line_item,
    compute_document_totals,
    validate_item_values,
)
from freelance_billing.services.lifecycle_service import (
    effective_invoice_status,
    effective_quote_status,
)
from freelance_billing.services.numbering_service import (
    next_invoice_number,
    next_quote_number,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=BillingDocument)

DRAFT_STATUS = "draft"


class DocumentService:
    """
    Service per la modifica e la derivazione dei documenti di fatturazione.

    Tutti i metodi sono puri: ricevono uno snapshot e ne restituiscono
    uno nuovo, senza modificare l'originale.
    """

    # ------------------------------------------------------------
    # Controlli
    # ------------------------------------------------------------
    def _check_owner(self, document: BillingDocument, user_id: uuid.UUID) -> None:
        """
        Verifica che l'utente sia il proprietario del documento.

        Raises:
            AuthorizationError: utente diverso dal proprietario
        """
        if document.user_id != user_id:
            logger.warning(
                "Utente %s non autorizzato a modificare il documento %s",
                user_id,
                document.id,
            )
            raise AuthorizationError(
                "Solo il proprietario può modificare il documento"
            )

    def _check_editable_status(self, document: BillingDocument) -> None:
        """
        Verifica che il documento sia in uno stato che permette modifiche alle righe.

        Raises:
            InvalidTransitionError: documento non in draft
        """
        if document.status.value != DRAFT_STATUS:
            raise InvalidTransitionError(
                f"Non è possibile modificare le righe di un documento in stato "
                f"'{document.status.value}'",
                current_status=document.status.value,
            )

    def _validate_items(self, items: Iterable[LineItem]) -> list[LineItem]:
        """
        Valida le righe con le regole di dominio e l'univocità di sort_order.

        Raises:
            BusinessValidationError: valori fuori dominio o sort_order duplicati
        """
        items = list(items)
        seen: set[int] = set()
        for item in items:
            validate_item_values(item.quantity, item.unit_price, item.tax_rate, item.discount)
            if item.sort_order in seen:
                raise BusinessValidationError(
                    f"sort_order {item.sort_order} duplicato nel documento",
                    extra={"field": "sort_order"},
                )
            seen.add(item.sort_order)
        return sorted(items, key=lambda item: item.sort_order)

    def _apply(
        self,
        document: DocumentT,
        now: Optional[datetime.datetime],
        **changes,
    ) -> DocumentT:
        if now is not None:
            changes["updated_at"] = now
        return document.model_copy(update=changes)

    # ------------------------------------------------------------
    # Righe e importi (solo draft)
    # ------------------------------------------------------------
    def add_item(
        self,
        document: DocumentT,
        item: Union[LineItem, Mapping[str, Any]],
        *,
        user_id: uuid.UUID,
        now: Optional[datetime.datetime] = None,
    ) -> DocumentT:
        """
        Aggiunge una riga al documento.

        La riga può essere una LineItem o un dizionario di campi: se il
        dizionario non indica sort_order la riga viene accodata.

        Raises:
            AuthorizationError: utente non proprietario
            InvalidTransitionError: documento non in draft
            BusinessValidationError: riga non valida o sort_order già usato
        """
        self._check_owner(document, user_id)
        self._check_editable_status(document)

        if not isinstance(item, LineItem):
            data = dict(item)
            if data.get("sort_order") is None:
                data["sort_order"] = self.next_sort_order(document)
            item = build_line_item(**data)
        items = self._validate_items([*document.items, item])

        logger.debug("Aggiunta riga %s al documento %s", item.sort_order, document.id)
        return self._apply(document, now, items=items)

    def remove_item(
        self,
        document: DocumentT,
        sort_order: int,
        *,
        user_id: uuid.UUID,
        now: Optional[datetime.datetime] = None,
    ) -> DocumentT:
        """
        Rimuove la riga con il sort_order indicato.

        Raises:
            NotFoundError: riga inesistente
        """
        self._check_owner(document, user_id)
        self._check_editable_status(document)
        items = [item for item in document.items if item.sort_order != sort_order]
        if len(items) == len(document.items):
            raise NotFoundError(
                f"Riga con sort_order {sort_order} non trovata nel documento {document.id}"
            )

        logger.debug("Rimossa riga %s dal documento %s", sort_order, document.id)
        return self._apply(document, now, items=items)

    def replace_items(
        self,
        document: DocumentT,
        items: Iterable[LineItem],
        *,
        user_id: uuid.UUID,
        now: Optional[datetime.datetime] = None,
    ) -> DocumentT:
        """Sostituisce tutte le righe del documento."""
        self._check_owner(document, user_id)
        self._check_editable_status(document)
        return self._apply(document, now, items=self._validate_items(items))

    def update_charges(
        self,
        document: DocumentT,
        *,
        user_id: uuid.UUID,
        tax_amount: Optional[Decimal] = None,
        discount_amount: Optional[Decimal] = None,
        now: Optional[datetime.datetime] = None,
    ) -> DocumentT:
        """
        Aggiorna imposta e sconto a livello documento.

        Raises:
            BusinessValidationError: importi negativi
        """
        self._check_owner(document, user_id)
        self._check_editable_status(document)

        tax = document.tax_amount if tax_amount is None else tax_amount
        discount = document.discount_amount if discount_amount is None else discount_amount
        # Valida gli importi con le stesse regole del calcolo totali
        totals = compute_document_totals(document.items, tax, discount, document.currency)
        return self._apply(
            document,
            now,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
        )

    def update_notes(
        self,
        document: DocumentT,
        notes: Optional[str],
        *,
        user_id: uuid.UUID,
        now: Optional[datetime.datetime] = None,
    ) -> DocumentT:
        """Aggiorna le note del documento. Consentito in ogni stato."""
        self._check_owner(document, user_id)
        return self._apply(document, now, notes=notes)

    @staticmethod
    def next_sort_order(document: BillingDocument) -> int:
        """Restituisce il primo sort_order libero in coda al documento."""
        if not document.items:
            return 0
        return max(item.sort_order for item in document.items) + 1

    # ------------------------------------------------------------
    # Derivazione documenti
    # ------------------------------------------------------------
    def duplicate_invoice(
        self,
        invoice: Invoice,
        *,
        today: datetime.date,
        new_id: Optional[uuid.UUID] = None,
        number: Optional[str] = None,
        existing_numbers: Iterable[str] = (),
        payment_terms_days: Optional[int] = None,
    ) -> Invoice:
        """
        Duplica una fattura come nuova bozza.

        La copia non ha pagamenti né timestamp di invio/visualizzazione;
        emissione oggi e scadenza secondo i termini di pagamento.
        """
        terms = (
            settings.default_payment_terms_days
            if payment_terms_days is None
            else payment_terms_days
        )
        logger.info("Duplicazione fattura %s", invoice.id)
        return Invoice(
            id=new_id or uuid.uuid4(),
            user_id=invoice.user_id,
            client_id=invoice.client_id,
            project_id=invoice.project_id,
            quote_id=invoice.quote_id,
            number=number or next_invoice_number(today, existing_numbers),
            title=f"{invoice.title} - Copy",
            items=list(invoice.items),
            tax_amount=invoice.tax_amount,
            discount_amount=invoice.discount_amount,
            currency=invoice.currency,
            notes=invoice.notes,
            terms=invoice.terms,
            status=InvoiceStatus.DRAFT,
            issue_date=today,
            due_date=today + datetime.timedelta(days=terms),
        )

    def duplicate_quote(
        self,
        quote: Quote,
        *,
        today: datetime.date,
        new_id: Optional[uuid.UUID] = None,
        number: Optional[str] = None,
        existing_numbers: Iterable[str] = (),
        validity_days: Optional[int] = None,
    ) -> Quote:
        """Duplica un preventivo come nuova bozza con nuova validità."""
        days = settings.quote_validity_days if validity_days is None else validity_days
        logger.info("Duplicazione preventivo %s", quote.id)
        return Quote(
            id=new_id or uuid.uuid4(),
            user_id=quote.user_id,
            client_id=quote.client_id,
            project_id=quote.project_id,
            number=number or next_quote_number(today, existing_numbers),
            title=f"{quote.title} - Copy",
            items=list(quote.items),
            tax_amount=quote.tax_amount,
            discount_amount=quote.discount_amount,
            currency=quote.currency,
            notes=quote.notes,
            terms=quote.terms,
            status=QuoteStatus.DRAFT,
            valid_until=today + datetime.timedelta(days=days),
        )

    def create_invoice_from_quote(
        self,
        quote: Quote,
        *,
        today: datetime.date,
        new_id: Optional[uuid.UUID] = None,
        number: Optional[str] = None,
        existing_numbers: Iterable[str] = (),
        due_date: Optional[datetime.date] = None,
    ) -> Invoice:
        """
        Genera una fattura in bozza da un preventivo ACCETTATO.

        Copia righe, importi a livello documento, valuta, cliente e progetto.

        Raises:
            InvalidTransitionError: preventivo non accettato
            BusinessValidationError: scadenza precedente alla data di emissione
        """
        if quote.status != QuoteStatus.ACCEPTED:
            raise InvalidTransitionError(
                "Impossibile generare una fattura da un preventivo non accettato",
                current_status=quote.status.value,
            )
        if due_date is not None and due_date < today:
            raise BusinessValidationError(
                "La data di scadenza non può precedere la data di emissione",
                extra={"field": "due_date"},
            )

        logger.info("Generazione fattura da preventivo %s", quote.id)
        return Invoice(
            id=new_id or uuid.uuid4(),
            user_id=quote.user_id,
            client_id=quote.client_id,
            project_id=quote.project_id,
            quote_id=quote.id,
            number=number or next_invoice_number(today, existing_numbers),
            title=f"Invoice for {quote.title}",
            items=list(quote.items),
            tax_amount=quote.tax_amount,
            discount_amount=quote.discount_amount,
            currency=quote.currency,
            notes=f"Invoice created from quote: {quote.number}",
            terms=quote.terms,
            status=InvoiceStatus.DRAFT,
            issue_date=today,
            due_date=due_date
            or today + datetime.timedelta(days=settings.default_payment_terms_days),
        )

    # ------------------------------------------------------------
    # Riepilogo
    # ------------------------------------------------------------
    def summarize_invoice(self, invoice: Invoice, today: datetime.date) -> InvoiceSummary:
        """Costruisce il riepilogo sintetico della fattura alla data indicata."""
        status = effective_invoice_status(invoice, today)
        amount_paid = invoice.amount_paid
        return InvoiceSummary(
            id=invoice.id,
            number=invoice.number,
            title=invoice.title,
            client_id=invoice.client_id,
            status=invoice.status,
            effective_status=status,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            total_amount=invoice.total_amount,
            amount_paid=amount_paid,
            balance_due=invoice.balance_due,
            is_overdue=status == InvoiceStatus.OVERDUE,
            is_partially_paid=Decimal("0") < amount_paid < invoice.total_amount,
            item_count=len(invoice.items),
            payment_count=len(invoice.payments),
        )

    def summarize_quote(self, quote: Quote, today: datetime.date) -> QuoteSummary:
        """Costruisce il riepilogo sintetico del preventivo alla data indicata."""
        status = effective_quote_status(quote, today)
        return QuoteSummary(
            id=quote.id,
            number=quote.number,
            title=quote.title,
            client_id=quote.client_id,
            status=quote.status,
            effective_status=status,
            total_amount=quote.total_amount,
            sent_at=quote.sent_at,
            accepted_at=quote.accepted_at,
            valid_until=quote.valid_until,
            is_expired=status == QuoteStatus.EXPIRED,
            item_count=len(quote.items),
        )


# Istanza singleton del service
document_service = DocumentService()
