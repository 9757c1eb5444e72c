"""
Service Layer per il Registro Pagamenti
Progetto: Freelance Manager (Gestionale Freelance)

Applica i pagamenti a una fattura e ne ricalcola lo stato.

Regole:
- Solo i pagamenti COMPLETED concorrono all'incassato
- Dopo ogni mutazione: residuo <= 0 -> paid; 0 < incassato < totale -> partial;
  nessun incasso -> si torna a viewed/sent
- Un pagamento in eccesso non viene troncato: la fattura è pagata e il
  risultato riporta un OverpaymentWarning
- Fatture draft, paid o cancelled non accettano mutazioni del registro
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from freelance_billing.core.exceptions import (
    BusinessValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from freelance_billing.schemas.billing import (
    PAYABLE_INVOICE_STATUSES,
    Invoice,
    InvoiceStatus,
    LedgerResult,
    OverpaymentWarning,
    Payment,
    PaymentStatus,
)
from freelance_billing.services.calculation_service import quantize_amount

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Transizioni ammesse per lo stato di un pagamento
PAYMENT_STATUS_TRANSITIONS: dict[PaymentStatus, list[PaymentStatus]] = {
    PaymentStatus.PENDING: [PaymentStatus.COMPLETED, PaymentStatus.FAILED],
    PaymentStatus.COMPLETED: [PaymentStatus.REFUNDED],
    PaymentStatus.FAILED: [],
    PaymentStatus.REFUNDED: [],
}


class PaymentLedgerService:
    """
    Service per la gestione dei pagamenti di una fattura.

    Ogni metodo riceve uno snapshot della fattura e restituisce un
    LedgerResult con il nuovo snapshot; in caso di errore lo snapshot
    ricevuto non viene modificato.
    """

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------
    def _check_payable(self, invoice: Invoice) -> None:
        """
        Verifica che la fattura accetti mutazioni del registro.

        Raises:
            InvalidTransitionError: fattura draft, paid o cancelled
        """
        if invoice.status not in PAYABLE_INVOICE_STATUSES:
            logger.warning(
                "Mutazione pagamenti rifiutata per fattura %s in stato %s",
                invoice.id,
                invoice.status.value,
            )
            raise InvalidTransitionError(
                f"Impossibile modificare i pagamenti di una fattura in stato "
                f"'{invoice.status.value}'",
                current_status=invoice.status.value,
            )

    def _find_payment(self, invoice: Invoice, payment_id: uuid.UUID) -> Payment:
        for payment in invoice.payments:
            if payment.id == payment_id:
                return payment
        raise NotFoundError(
            f"Pagamento {payment_id} non trovato sulla fattura {invoice.id}"
        )

    def _settle(
        self,
        invoice: Invoice,
        payments: list[Payment],
        fallback_date: date,
    ) -> LedgerResult:
        """
        Ricalcola incassato, residuo e stato a partire dai nuovi pagamenti.

        Args:
            invoice: Snapshot di partenza
            payments: Nuova collezione di pagamenti
            fallback_date: Data saldo se nessun pagamento completato ha una data

        Returns:
            LedgerResult: nuovo snapshot ed eventuali avvisi
        """
        updated = invoice.model_copy(update={"payments": payments})
        amount_paid = updated.amount_paid
        balance_due = updated.balance_due

        update: dict = {}
        if balance_due <= 0:
            completed_dates = [
                p.payment_date for p in payments if p.status == PaymentStatus.COMPLETED
            ]
            update["status"] = InvoiceStatus.PAID
            update["paid_date"] = max(completed_dates) if completed_dates else fallback_date
        elif amount_paid > 0:
            update["status"] = InvoiceStatus.PARTIAL
        elif invoice.status == InvoiceStatus.PARTIAL:
            # Nessun incasso residuo: si torna all'ultimo stato esplicito
            update["status"] = (
                InvoiceStatus.VIEWED if invoice.viewed_at is not None else InvoiceStatus.SENT
            )

        if update:
            updated = updated.model_copy(update=update)
        if updated.status != invoice.status:
            logger.info(
                "Fattura %s: %s -> %s (incassato %s, residuo %s)",
                invoice.id,
                invoice.status.value,
                updated.status.value,
                amount_paid,
                balance_due,
            )

        warnings = []
        if balance_due < 0:
            overpaid = -balance_due
            logger.warning(
                "Pagamento in eccesso sulla fattura %s: %s %s",
                invoice.id,
                overpaid,
                invoice.currency,
            )
            warnings.append(
                OverpaymentWarning(
                    detail=(
                        f"L'incassato supera il totale fattura di {overpaid} "
                        f"{invoice.currency}"
                    ),
                    invoice_id=invoice.id,
                    overpaid_amount=overpaid,
                )
            )

        return LedgerResult(invoice=updated, warnings=warnings)

    # ------------------------------------------------------------
    # Operazioni
    # ------------------------------------------------------------
    def record_payment(self, invoice: Invoice, payment: Payment) -> LedgerResult:
        """
        Registra un pagamento sulla fattura.

        Steps:
        1. Verifica che la fattura accetti pagamenti
        2. Valida importo (> 0, nei decimali della valuta) e valuta (coincidente
           con la fattura)
        3. Verifica unicità di id e transaction_id
        4. Ricalcola incassato, residuo e stato

        Args:
            invoice: Snapshot della fattura
            payment: Pagamento da registrare (valuta assente = valuta fattura)

        Returns:
            LedgerResult: Fattura aggiornata ed eventuale OverpaymentWarning

        Raises:
            InvalidTransitionError: fattura draft, paid o cancelled
            BusinessValidationError: importo non positivo o con troppi decimali,
                valuta diversa, pagamento o transazione duplicati
        """
        self._check_payable(invoice)

        if payment.amount <= 0:
            raise BusinessValidationError(
                "L'importo del pagamento deve essere maggiore di zero",
                extra={"field": "amount"},
            )

        currency = payment.currency or invoice.currency
        if currency != invoice.currency:
            raise BusinessValidationError(
                f"La valuta del pagamento ({currency}) non coincide con quella "
                f"della fattura ({invoice.currency})",
                extra={"field": "currency"},
            )

        if payment.amount != quantize_amount(payment.amount, currency):
            raise BusinessValidationError(
                f"L'importo del pagamento ({payment.amount}) ha più decimali "
                f"di quelli ammessi per la valuta {currency}",
                extra={"field": "amount"},
            )

        for existing in invoice.payments:
            if existing.id == payment.id:
                raise BusinessValidationError(
                    f"Il pagamento {payment.id} è già registrato sulla fattura",
                    extra={"field": "id"},
                )
            if payment.transaction_id and existing.transaction_id == payment.transaction_id:
                raise BusinessValidationError(
                    f"Esiste già un pagamento con transaction_id '{payment.transaction_id}'",
                    extra={"field": "transaction_id"},
                )

        if payment.currency is None:
            payment = payment.model_copy(update={"currency": currency})

        logger.info(
            "Registrazione pagamento %s di %s %s (%s) sulla fattura %s",
            payment.id,
            payment.amount,
            currency,
            payment.status.value,
            invoice.id,
        )
        return self._settle(invoice, [*invoice.payments, payment], payment.payment_date)

    def void_payment(self, invoice: Invoice, payment_id: uuid.UUID) -> LedgerResult:
        """
        Rimuove un pagamento dalla fattura e ricalcola lo stato.

        Raises:
            InvalidTransitionError: fattura draft, paid o cancelled
            NotFoundError: pagamento non presente sulla fattura
        """
        self._check_payable(invoice)
        voided = self._find_payment(invoice, payment_id)

        logger.info("Annullamento pagamento %s sulla fattura %s", voided.id, invoice.id)
        remaining = [p for p in invoice.payments if p.id != payment_id]
        return self._settle(invoice, remaining, voided.payment_date)

    def update_payment_status(
        self,
        invoice: Invoice,
        payment_id: uuid.UUID,
        new_status: PaymentStatus,
        payment_date: Optional[date] = None,
    ) -> LedgerResult:
        """
        Aggiorna lo stato di un pagamento.

        Transizioni ammesse: pending -> completed/failed, completed -> refunded.
        Un rimborso sottrae dall'incassato l'importo precedentemente completato.

        Args:
            invoice: Snapshot della fattura
            payment_id: UUID del pagamento
            new_status: Nuovo stato del pagamento
            payment_date: Data effettiva (es. data di accredito del pending)

        Raises:
            InvalidTransitionError: fattura non modificabile o transizione del
                pagamento non ammessa
            NotFoundError: pagamento non presente sulla fattura
        """
        self._check_payable(invoice)
        payment = self._find_payment(invoice, payment_id)

        if new_status not in PAYMENT_STATUS_TRANSITIONS.get(payment.status, []):
            logger.warning(
                "Transizione pagamento rifiutata %s: %s -> %s",
                payment.id,
                payment.status.value,
                new_status.value,
            )
            raise InvalidTransitionError(
                f"Transizione del pagamento da '{payment.status.value}' a "
                f"'{new_status.value}' non consentita",
                current_status=payment.status.value,
                target_status=new_status.value,
            )

        update: dict = {"status": new_status}
        if payment_date is not None:
            update["payment_date"] = payment_date
        changed = payment.model_copy(update=update)

        logger.info(
            "Pagamento %s: %s -> %s", payment.id, payment.status.value, new_status.value
        )
        payments = [changed if p.id == payment_id else p for p in invoice.payments]
        return self._settle(invoice, payments, changed.payment_date)


# Istanza singleton del service
payment_ledger = PaymentLedgerService()

record_payment = payment_ledger.record_payment
void_payment = payment_ledger.void_payment
update_payment_status = payment_ledger.update_payment_status
