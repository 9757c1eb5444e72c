"""
Service Layer per il Ciclo di Vita dei Documenti
Progetto: Freelance Manager (Gestionale Freelance)

Definisce le transizioni di stato di preventivi e fatture, validate
tramite QUOTE_TRANSITIONS e INVOICE_TRANSITIONS.

Stato effettivo:
- Un preventivo in draft/sent/viewed con valid_until superata è 'expired'
- Una fattura in sent/viewed/partial con due_date superata è 'overdue'
Lo stato effettivo è calcolato alla lettura a partire da una data di
riferimento esplicita: nessun job in background aggiorna lo stato persistito.

Ogni transizione riceve `now` esplicitamente e restituisce un nuovo snapshot;
le transizioni dei preventivi aggiungono una voce allo storico (history).
"""

import datetime
import logging
from typing import Optional, Union

from freelance_billing.core.exceptions import InvalidTransitionError
from freelance_billing.schemas.billing import (
    INVOICE_TRANSITIONS,
    QUOTE_TRANSITIONS,
    DocumentType,
    Invoice,
    InvoiceStatus,
    Quote,
    QuoteHistoryAction,
    QuoteHistoryEntry,
    QuoteStatus,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Stati che possono diventare 'expired' per decorrenza di valid_until
QUOTE_EXPIRABLE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.SENT, QuoteStatus.VIEWED)

# Stati che possono diventare 'overdue' per decorrenza di due_date
INVOICE_OVERDUE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIAL)

# Descrizioni delle voci di storico dei preventivi
QUOTE_HISTORY_DESCRIPTIONS = {
    QuoteHistoryAction.SENT: "Preventivo inviato al cliente",
    QuoteHistoryAction.VIEWED: "Preventivo visualizzato dal cliente",
    QuoteHistoryAction.ACCEPTED: "Preventivo accettato dal cliente",
    QuoteHistoryAction.REJECTED: "Preventivo rifiutato dal cliente",
    QuoteHistoryAction.EXPIRED: "Preventivo scaduto",
}


def _as_date(value: Union[datetime.date, datetime.datetime]) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def _reject(
    kind: str,
    document_id,
    current: str,
    target: str,
    detail: Optional[str] = None,
) -> InvalidTransitionError:
    logger.warning(
        "Transizione rifiutata per %s %s: %s -> %s", kind, document_id, current, target
    )
    return InvalidTransitionError(
        detail or f"Transizione da '{current}' a '{target}' non consentita",
        current_status=current,
        target_status=target,
    )


def ensure_transition(
    kind: DocumentType,
    current: Union[QuoteStatus, InvoiceStatus],
    target: Union[QuoteStatus, InvoiceStatus],
    document_id=None,
) -> None:
    """
    Valida una transizione di stato contro la matrice del tipo di documento.

    Args:
        kind: Tipo di documento (quote o invoice)
        current: Stato di partenza
        target: Stato di destinazione
        document_id: UUID del documento (solo per il log)

    Raises:
        InvalidTransitionError: transizione non presente nella matrice
    """
    matrix = QUOTE_TRANSITIONS if kind == DocumentType.QUOTE else INVOICE_TRANSITIONS
    if target not in matrix.get(current, []):
        label = "preventivo" if kind == DocumentType.QUOTE else "fattura"
        raise _reject(label, document_id, current.value, target.value)


# -------------------------------------------------------------------
# Stato effettivo
# -------------------------------------------------------------------

def is_quote_expired(quote: Quote, today: Union[datetime.date, datetime.datetime]) -> bool:
    """True se valid_until è superata e il preventivo non è in uno stato finale."""
    today = _as_date(today)
    return (
        quote.status in QUOTE_EXPIRABLE_STATUSES
        and quote.valid_until is not None
        and quote.valid_until < today
    )


def effective_quote_status(
    quote: Quote, today: Union[datetime.date, datetime.datetime]
) -> QuoteStatus:
    """
    Restituisce lo stato effettivo del preventivo alla data di riferimento.

    Args:
        quote: Snapshot del preventivo
        today: Data (o data/ora) di riferimento

    Returns:
        QuoteStatus: EXPIRED se scaduto, altrimenti lo stato persistito
    """
    if is_quote_expired(quote, today):
        return QuoteStatus.EXPIRED
    return quote.status


def is_invoice_overdue(invoice: Invoice, today: Union[datetime.date, datetime.datetime]) -> bool:
    """True se la fattura è aperta, non saldata e la scadenza è superata."""
    today = _as_date(today)
    if invoice.status == InvoiceStatus.OVERDUE:
        return True
    return invoice.status in INVOICE_OVERDUE_STATUSES and invoice.due_date < today


def effective_invoice_status(
    invoice: Invoice, today: Union[datetime.date, datetime.datetime]
) -> InvoiceStatus:
    """
    Restituisce lo stato effettivo della fattura alla data di riferimento.

    Args:
        invoice: Snapshot della fattura
        today: Data (o data/ora) di riferimento

    Returns:
        InvoiceStatus: OVERDUE se scaduta e aperta, altrimenti lo stato persistito
    """
    if is_invoice_overdue(invoice, today):
        return InvoiceStatus.OVERDUE
    return invoice.status


# -------------------------------------------------------------------
# Preventivi
# -------------------------------------------------------------------

class QuoteLifecycleService:
    """
    Service per le transizioni di stato dei preventivi.

    draft -> sent -> viewed -> {accepted, rejected}
    draft/sent/viewed -> expired (quando valid_until è superata)

    Le transizioni partono sempre dallo stato effettivo: un preventivo
    scaduto ma non ancora aggiornato non può essere accettato.
    Ogni transizione aggiunge una voce allo storico del preventivo.
    """

    def _history_entry(
        self,
        action: QuoteHistoryAction,
        from_status: QuoteStatus,
        now: datetime.datetime,
    ) -> QuoteHistoryEntry:
        return QuoteHistoryEntry(
            action=action,
            description=QUOTE_HISTORY_DESCRIPTIONS[action],
            from_status=from_status,
            created_at=now,
        )

    def _transition(
        self,
        quote: Quote,
        target: QuoteStatus,
        now: datetime.datetime,
        **stamps,
    ) -> Quote:
        current = effective_quote_status(quote, now)
        ensure_transition(DocumentType.QUOTE, current, target, quote.id)

        logger.info("Preventivo %s: %s -> %s", quote.id, current.value, target.value)
        entry = self._history_entry(QuoteHistoryAction(target.value), current, now)
        return quote.model_copy(
            update={
                "status": target,
                "updated_at": now,
                "history": [*quote.history, entry],
                **stamps,
            }
        )

    def send(self, quote: Quote, now: datetime.datetime) -> Quote:
        """Invia il preventivo (solo da draft). Imposta sent_at."""
        return self._transition(quote, QuoteStatus.SENT, now, sent_at=now)

    def view(self, quote: Quote, now: datetime.datetime) -> Quote:
        """
        Registra la visualizzazione del preventivo.

        Idempotente: un preventivo già visualizzato viene restituito invariato,
        senza aggiornare viewed_at.
        """
        current = effective_quote_status(quote, now)
        if current == QuoteStatus.VIEWED:
            return quote
        return self._transition(quote, QuoteStatus.VIEWED, now, viewed_at=now)

    def accept(self, quote: Quote, now: datetime.datetime) -> Quote:
        """Accetta il preventivo (solo da viewed). Stato finale."""
        return self._transition(quote, QuoteStatus.ACCEPTED, now, accepted_at=now)

    def reject(self, quote: Quote, now: datetime.datetime) -> Quote:
        """Rifiuta il preventivo (solo da viewed). Stato finale."""
        return self._transition(quote, QuoteStatus.REJECTED, now, rejected_at=now)

    def expire(self, quote: Quote, now: datetime.datetime) -> Quote:
        """
        Persiste la scadenza del preventivo.

        Raises:
            InvalidTransitionError: preventivo in stato finale o valid_until
                non ancora superata
        """
        if not is_quote_expired(quote, now):
            raise _reject(
                "preventivo",
                quote.id,
                quote.status.value,
                QuoteStatus.EXPIRED.value,
                detail=(
                    f"Il preventivo in stato '{quote.status.value}' "
                    "non è scaduto alla data indicata"
                ),
            )
        logger.info(
            "Preventivo %s: %s -> %s", quote.id, quote.status.value, QuoteStatus.EXPIRED.value
        )
        entry = self._history_entry(QuoteHistoryAction.EXPIRED, quote.status, now)
        return quote.model_copy(
            update={
                "status": QuoteStatus.EXPIRED,
                "expired_at": now,
                "updated_at": now,
                "history": [*quote.history, entry],
            }
        )

    def history(self, quote: Quote) -> list[QuoteHistoryEntry]:
        """Storico del preventivo, dalla voce più recente."""
        return sorted(quote.history, key=lambda entry: entry.created_at, reverse=True)

    def refresh_status(self, quote: Quote, now: datetime.datetime) -> Quote:
        """Allinea lo stato persistito a quello effettivo, se diverso."""
        if is_quote_expired(quote, now):
            return self.expire(quote, now)
        return quote


# -------------------------------------------------------------------
# Fatture
# -------------------------------------------------------------------

class InvoiceLifecycleService:
    """
    Service per le transizioni di stato esplicite delle fatture.

    draft -> sent -> viewed; ogni stato non finale -> cancelled;
    sent/viewed/partial -> overdue (quando due_date è superata).

    Le transizioni verso partial e paid sono guidate dal registro
    pagamenti (payment_service.py).
    """

    def _check(self, invoice: Invoice, target: InvoiceStatus) -> None:
        ensure_transition(DocumentType.INVOICE, invoice.status, target, invoice.id)

    def send(self, invoice: Invoice, now: datetime.datetime) -> Invoice:
        """Invia la fattura (solo da draft). Imposta sent_at."""
        self._check(invoice, InvoiceStatus.SENT)
        logger.info("Fattura %s: %s -> sent", invoice.id, invoice.status.value)
        return invoice.model_copy(
            update={"status": InvoiceStatus.SENT, "sent_at": now, "updated_at": now}
        )

    def view(self, invoice: Invoice, now: datetime.datetime) -> Invoice:
        """
        Registra la visualizzazione della fattura.

        - sent: passa a viewed e imposta viewed_at
        - viewed: nessuna modifica (idempotente)
        - partial/overdue/paid: imposta viewed_at solo se assente, lo stato non cambia
        - draft/cancelled: transizione non consentita
        """
        if invoice.status == InvoiceStatus.SENT:
            logger.info("Fattura %s: sent -> viewed", invoice.id)
            return invoice.model_copy(
                update={"status": InvoiceStatus.VIEWED, "viewed_at": now, "updated_at": now}
            )
        if invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED):
            raise _reject(
                "fattura", invoice.id, invoice.status.value, InvoiceStatus.VIEWED.value
            )
        if invoice.viewed_at is None:
            return invoice.model_copy(update={"viewed_at": now, "updated_at": now})
        return invoice

    def cancel(self, invoice: Invoice, now: datetime.datetime) -> Invoice:
        """Annulla la fattura da qualunque stato non finale. Stato finale."""
        self._check(invoice, InvoiceStatus.CANCELLED)
        logger.info("Fattura %s: %s -> cancelled", invoice.id, invoice.status.value)
        return invoice.model_copy(
            update={
                "status": InvoiceStatus.CANCELLED,
                "cancelled_at": now,
                "updated_at": now,
            }
        )

    def mark_overdue(self, invoice: Invoice, now: datetime.datetime) -> Invoice:
        """
        Persiste lo stato overdue.

        Raises:
            InvalidTransitionError: fattura non aperta o scadenza non superata
        """
        if invoice.status not in INVOICE_OVERDUE_STATUSES or not is_invoice_overdue(invoice, now):
            raise _reject(
                "fattura",
                invoice.id,
                invoice.status.value,
                InvoiceStatus.OVERDUE.value,
                detail=(
                    f"La fattura in stato '{invoice.status.value}' "
                    "non risulta scaduta alla data indicata"
                ),
            )
        logger.info("Fattura %s: %s -> overdue", invoice.id, invoice.status.value)
        return invoice.model_copy(
            update={"status": InvoiceStatus.OVERDUE, "updated_at": now}
        )

    def refresh_status(self, invoice: Invoice, now: datetime.datetime) -> Invoice:
        """Allinea lo stato persistito a quello effettivo, se diverso."""
        if invoice.status in INVOICE_OVERDUE_STATUSES and is_invoice_overdue(invoice, now):
            return self.mark_overdue(invoice, now)
        return invoice


# Istanze singleton dei service
quote_lifecycle = QuoteLifecycleService()
invoice_lifecycle = InvoiceLifecycleService()

# Operazioni esposte come funzioni di modulo
send_quote = quote_lifecycle.send
view_quote = quote_lifecycle.view
accept_quote = quote_lifecycle.accept
reject_quote = quote_lifecycle.reject
expire_quote = quote_lifecycle.expire
refresh_quote_status = quote_lifecycle.refresh_status
quote_history = quote_lifecycle.history

send_invoice = invoice_lifecycle.send
view_invoice = invoice_lifecycle.view
cancel_invoice = invoice_lifecycle.cancel
mark_invoice_overdue = invoice_lifecycle.mark_overdue
refresh_invoice_status = invoice_lifecycle.refresh_status
