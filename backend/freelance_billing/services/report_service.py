"""
Service Layer per Report e Statistiche
Progetto: Freelance Manager (Gestionale Freelance)

Aggregazioni pure su collezioni esplicite di documenti, clienti e progetti:
anzianità crediti, statistiche dashboard, riepilogo cliente, statistiche clienti.
Nessuna funzione modifica gli input né mantiene stato tra le chiamate.
"""

import datetime
import logging
import uuid
from collections import defaultdict
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from freelance_billing.core.config import settings
from freelance_billing.schemas.billing import (
    Invoice,
    InvoiceStatus,
    PaymentStatus,
    Quote,
    QuoteStatus,
)
from freelance_billing.schemas.client import (
    Client,
    ClientCategory,
    ClientStats,
    ClientStatus,
    ClientSummary,
    EngagementLevel,
    PaymentBehavior,
    Project,
    ProjectStatus,
    RevenueTier,
)
from freelance_billing.schemas.report import (
    AgingBucket,
    AgingBucketLabel,
    AgingEntry,
    ClientAgingReport,
    DashboardStats,
    InvoiceOverview,
    ProjectOverview,
    QuoteOverview,
)
from freelance_billing.services.calculation_service import quantize_amount
from freelance_billing.services.lifecycle_service import (
    effective_invoice_status,
    effective_quote_status,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Precisione del tasso di puntualità mostrato nel riepilogo
RATE_PRECISION = Decimal("0.0001")

# Fatture escluse da importi fatturati e residui
NON_BILLED_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)

# Preventivi in attesa di risposta del cliente
PENDING_QUOTE_STATUSES = (QuoteStatus.SENT, QuoteStatus.VIEWED)

# Fatture aperte non ancora scadute
PENDING_INVOICE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIAL)

AGING_ORDER = (
    AgingBucketLabel.CURRENT,
    AgingBucketLabel.DAYS_1_30,
    AgingBucketLabel.DAYS_31_60,
    AgingBucketLabel.DAYS_61_90,
    AgingBucketLabel.OVER_90,
)


def aging_bucket_for(days_overdue: int) -> AgingBucketLabel:
    """Fascia di anzianità per i giorni trascorsi dalla scadenza."""
    if days_overdue <= 0:
        return AgingBucketLabel.CURRENT
    if days_overdue <= 30:
        return AgingBucketLabel.DAYS_1_30
    if days_overdue <= 60:
        return AgingBucketLabel.DAYS_31_60
    if days_overdue <= 90:
        return AgingBucketLabel.DAYS_61_90
    return AgingBucketLabel.OVER_90


def classify_payment_behavior(on_time_rate: Optional[Decimal]) -> PaymentBehavior:
    """
    Classifica la puntualità nei pagamenti.

    Senza fatture pagate il cliente è considerato 'average'.
    """
    if on_time_rate is None:
        return PaymentBehavior.AVERAGE
    if on_time_rate >= settings.payment_behavior_excellent:
        return PaymentBehavior.EXCELLENT
    if on_time_rate >= settings.payment_behavior_good:
        return PaymentBehavior.GOOD
    if on_time_rate >= settings.payment_behavior_average:
        return PaymentBehavior.AVERAGE
    return PaymentBehavior.POOR


def classify_engagement(
    last_activity: Optional[datetime.date],
    active_projects: int,
    today: datetime.date,
) -> EngagementLevel:
    """
    Classifica il livello di attività del cliente.

    - high: attività negli ultimi N giorni e almeno un progetto attivo
    - low: nessuna attività o ultima attività oltre la soglia di inattività
    - medium: tutti gli altri casi
    """
    if last_activity is None:
        return EngagementLevel.LOW
    days = (today - last_activity).days
    if days >= settings.engagement_inactive_days:
        return EngagementLevel.LOW
    if days <= settings.engagement_recent_days and active_projects >= 1:
        return EngagementLevel.HIGH
    return EngagementLevel.MEDIUM


def classify_revenue_tier(total_paid: Decimal) -> RevenueTier:
    if total_paid >= settings.revenue_tier_high:
        return RevenueTier.HIGH
    if total_paid >= settings.revenue_tier_medium:
        return RevenueTier.MEDIUM
    return RevenueTier.LOW


def _as_date(value) -> Optional[datetime.date]:
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def _latest(values: Iterable) -> Optional[datetime.date]:
    dates = [_as_date(v) for v in values if v is not None]
    return max(dates) if dates else None


def _outstanding(invoice: Invoice) -> Decimal:
    """Residuo positivo di una fattura emessa e non annullata."""
    if invoice.status in NON_BILLED_STATUSES or invoice.balance_due <= 0:
        return ZERO
    return invoice.balance_due


class ReportService:

    @staticmethod
    def compute_aging_report(
        invoices: Sequence[Invoice], today: datetime.date
    ) -> list[ClientAgingReport]:
        """
        Anzianità dei crediti raggruppata per cliente e valuta.

        Considera solo fatture emesse (non draft), non annullate e con
        residuo positivo. I giorni di ritardo sono giorni di calendario:
        (today - due_date).days. Ogni report contiene sempre tutte e
        cinque le fasce, nell'ordine current, 1-30, 31-60, 61-90, 90+.

        Args:
            invoices: Fatture da analizzare
            today: Data di riferimento

        Returns:
            list[ClientAgingReport]: un report per coppia (cliente, valuta),
                nell'ordine di prima comparsa
        """
        today = _as_date(today)
        groups: dict[tuple[uuid.UUID, str], list[AgingEntry]] = {}

        for invoice in invoices:
            balance = _outstanding(invoice)
            if balance <= 0:
                continue
            days = (today - invoice.due_date).days
            entry = AgingEntry(
                invoice_id=invoice.id,
                invoice_number=invoice.number,
                issue_date=invoice.issue_date,
                due_date=invoice.due_date,
                total_amount=invoice.total_amount,
                amount_paid=invoice.amount_paid,
                balance_due=balance,
                status=invoice.status,
                effective_status=effective_invoice_status(invoice, today),
                bucket=aging_bucket_for(days),
                days_overdue=max(0, days),
            )
            groups.setdefault((invoice.client_id, invoice.currency), []).append(entry)

        reports = []
        for (client_id, currency), entries in groups.items():
            amounts: dict[AgingBucketLabel, Decimal] = defaultdict(lambda: ZERO)
            counts: dict[AgingBucketLabel, int] = defaultdict(int)
            for entry in entries:
                amounts[entry.bucket] += entry.balance_due
                counts[entry.bucket] += 1

            buckets = [
                AgingBucket(
                    label=label,
                    amount=quantize_amount(amounts[label], currency),
                    invoice_count=counts[label],
                )
                for label in AGING_ORDER
            ]
            reports.append(
                ClientAgingReport(
                    client_id=client_id,
                    currency=currency,
                    buckets=buckets,
                    total_outstanding=quantize_amount(
                        sum((b.amount for b in buckets), ZERO), currency
                    ),
                    entries=entries,
                )
            )

        logger.debug(
            "Aging calcolato su %d fatture: %d report cliente", len(invoices), len(reports)
        )
        return reports

    @staticmethod
    def compute_quote_overview(
        quotes: Sequence[Quote], today: datetime.date
    ) -> QuoteOverview:
        counts: dict[QuoteStatus, int] = defaultdict(int)
        total_value = accepted_value = pending_value = ZERO

        for quote in quotes:
            status = effective_quote_status(quote, today)
            counts[status] += 1
            total_value += quote.total_amount
            if status == QuoteStatus.ACCEPTED:
                accepted_value += quote.total_amount
            elif status in PENDING_QUOTE_STATUSES:
                pending_value += quote.total_amount

        return QuoteOverview(
            total=len(quotes),
            draft=counts[QuoteStatus.DRAFT],
            pending=sum(counts[s] for s in PENDING_QUOTE_STATUSES),
            accepted=counts[QuoteStatus.ACCEPTED],
            rejected=counts[QuoteStatus.REJECTED],
            expired=counts[QuoteStatus.EXPIRED],
            total_value=quantize_amount(total_value),
            accepted_value=quantize_amount(accepted_value),
            pending_value=quantize_amount(pending_value),
        )

    @staticmethod
    def compute_invoice_overview(
        invoices: Sequence[Invoice], today: datetime.date
    ) -> InvoiceOverview:
        counts: dict[InvoiceStatus, int] = defaultdict(int)
        total_amount = total_paid = total_due = overdue_amount = ZERO

        for invoice in invoices:
            status = effective_invoice_status(invoice, today)
            counts[status] += 1
            if invoice.status == InvoiceStatus.CANCELLED:
                continue
            total_amount += invoice.total_amount
            total_paid += invoice.amount_paid
            total_due += _outstanding(invoice)
            if status == InvoiceStatus.OVERDUE:
                overdue_amount += _outstanding(invoice)

        return InvoiceOverview(
            total=len(invoices),
            draft=counts[InvoiceStatus.DRAFT],
            pending=sum(counts[s] for s in PENDING_INVOICE_STATUSES),
            paid=counts[InvoiceStatus.PAID],
            overdue=counts[InvoiceStatus.OVERDUE],
            cancelled=counts[InvoiceStatus.CANCELLED],
            total_amount=quantize_amount(total_amount),
            total_paid=quantize_amount(total_paid),
            total_due=quantize_amount(total_due),
            overdue_amount=quantize_amount(overdue_amount),
        )

    @staticmethod
    def compute_project_overview(projects: Sequence[Project]) -> ProjectOverview:
        counts: dict[ProjectStatus, int] = defaultdict(int)
        for project in projects:
            counts[project.status] += 1
        return ProjectOverview(
            total=len(projects),
            active=counts[ProjectStatus.ACTIVE],
            completed=counts[ProjectStatus.COMPLETED],
            on_hold=counts[ProjectStatus.ON_HOLD],
            cancelled=counts[ProjectStatus.CANCELLED],
        )

    @staticmethod
    def compute_conversion_rate(accepted: int, total: int) -> int:
        """Percentuale intera di preventivi accettati (0 senza preventivi)."""
        if total == 0:
            return 0
        rate = Decimal(accepted) * 100 / Decimal(total)
        return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @staticmethod
    def compute_dashboard_stats(
        quotes: Sequence[Quote],
        invoices: Sequence[Invoice],
        projects: Sequence[Project],
        today: datetime.date,
        clients: Optional[Sequence[Client]] = None,
    ) -> DashboardStats:
        """
        Statistiche di portafoglio per la dashboard.

        Gli stati sono quelli effettivi alla data di riferimento: un preventivo
        scaduto conta come expired e una fattura scaduta come overdue anche
        se lo stato persistito non è ancora aggiornato.

        Gli importi sono sommati senza conversione di valuta.

        Args:
            quotes: Preventivi
            invoices: Fatture
            projects: Progetti
            today: Data di riferimento
            clients: Clienti (se assente si contano i clienti distinti dei documenti)
        """
        today = _as_date(today)
        quote_overview = ReportService.compute_quote_overview(quotes, today)
        invoice_overview = ReportService.compute_invoice_overview(invoices, today)
        project_overview = ReportService.compute_project_overview(projects)

        if clients is not None:
            total_clients = len(clients)
        else:
            total_clients = len(
                {q.client_id for q in quotes}
                | {i.client_id for i in invoices}
                | {p.client_id for p in projects}
            )

        total_revenue = sum(
            (i.total_amount for i in invoices if i.status == InvoiceStatus.PAID), ZERO
        )

        stats = DashboardStats(
            total_quotes=quote_overview.total,
            total_invoices=invoice_overview.total,
            total_projects=project_overview.total,
            total_clients=total_clients,
            total_revenue=quantize_amount(total_revenue),
            conversion_rate=ReportService.compute_conversion_rate(
                quote_overview.accepted, quote_overview.total
            ),
            pending_quotes=quote_overview.pending,
            overdue_invoices=invoice_overview.overdue,
            active_projects=project_overview.active,
            total_paid_amount=invoice_overview.total_paid,
            total_balance_due=invoice_overview.total_due,
            quotes=quote_overview,
            invoices=invoice_overview,
            projects=project_overview,
        )
        logger.debug(
            "Dashboard calcolata: %d preventivi, %d fatture, %d progetti",
            stats.total_quotes,
            stats.total_invoices,
            stats.total_projects,
        )
        return stats

    @staticmethod
    def compute_on_time_payment_rate(invoices: Iterable[Invoice]) -> Optional[Decimal]:
        """
        Frazione esatta delle fatture pagate con paid_date <= due_date.

        Il valore non è arrotondato: la classificazione della puntualità
        confronta la frazione esatta con le soglie.

        Returns:
            Optional[Decimal]: None se non ci sono fatture pagate
        """
        paid = [i for i in invoices if i.status == InvoiceStatus.PAID and i.paid_date is not None]
        if not paid:
            return None
        on_time = sum(1 for i in paid if i.paid_date <= i.due_date)
        return Decimal(on_time) / Decimal(len(paid))

    @staticmethod
    def compute_client_summary(
        client: Client,
        invoices: Sequence[Invoice],
        quotes: Sequence[Quote],
        projects: Sequence[Project],
        today: datetime.date,
    ) -> ClientSummary:
        """
        Riepilogo finanziario e relazionale di un cliente.

        Le collezioni possono contenere documenti di altri clienti:
        vengono considerati solo quelli con client_id del cliente.

        Ultima attività: data più recente tra creazione, aggiornamento e
        invio dei documenti, date dei pagamenti e aggiornamenti dei progetti.
        """
        today = _as_date(today)
        invoices = [i for i in invoices if i.client_id == client.id]
        quotes = [q for q in quotes if q.client_id == client.id]
        projects = [p for p in projects if p.client_id == client.id]

        billed = [i for i in invoices if i.status not in NON_BILLED_STATUSES]
        total_invoiced = sum((i.total_amount for i in billed), ZERO)
        total_paid = sum(
            (i.amount_paid for i in invoices if i.status != InvoiceStatus.CANCELLED), ZERO
        )
        outstanding = sum((_outstanding(i) for i in invoices), ZERO)

        completed_payment_dates = [
            p.payment_date
            for i in invoices
            for p in i.payments
            if p.status == PaymentStatus.COMPLETED
        ]
        activity = []
        for document in (*invoices, *quotes):
            activity.extend((document.created_at, document.updated_at, document.sent_at))
        activity.extend(p.payment_date for i in invoices for p in i.payments)
        activity.extend(p.updated_at or p.created_at for p in projects)
        last_activity = _latest(activity)

        active_projects = sum(1 for p in projects if p.status == ProjectStatus.ACTIVE)
        on_time_rate = ReportService.compute_on_time_payment_rate(invoices)

        summary = ClientSummary(
            client_id=client.id,
            company_name=client.company_name,
            contact_name=client.contact_name,
            status=client.status,
            revenue_tier=classify_revenue_tier(total_paid),
            project_count=len(projects),
            active_project_count=active_projects,
            quote_count=len(quotes),
            invoice_count=len(invoices),
            total_invoiced=quantize_amount(total_invoiced),
            total_paid_amount=quantize_amount(total_paid),
            outstanding_balance=quantize_amount(outstanding),
            on_time_payment_rate=(
                None
                if on_time_rate is None
                else on_time_rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_EVEN)
            ),
            payment_behavior=classify_payment_behavior(on_time_rate),
            has_overdue_invoices=any(
                effective_invoice_status(i, today) == InvoiceStatus.OVERDUE for i in invoices
            ),
            has_pending_quotes=any(
                effective_quote_status(q, today) in PENDING_QUOTE_STATUSES for q in quotes
            ),
            last_payment_date=_latest(completed_payment_dates),
            last_invoice_date=_latest(i.issue_date for i in billed),
            last_activity_date=last_activity,
            engagement_level=classify_engagement(last_activity, active_projects, today),
        )
        logger.debug("Riepilogo cliente %s calcolato", client.id)
        return summary

    @staticmethod
    def compute_client_stats(
        clients: Sequence[Client],
        invoices: Sequence[Invoice],
        projects: Sequence[Project],
    ) -> ClientStats:
        """
        Statistiche aggregate sui clienti indicati.

        - total_revenue: totale delle fatture pagate dei clienti
        - avg_projects_per_client: progetti dei clienti / numero clienti
        """
        client_ids = {c.id for c in clients}
        total_revenue = sum(
            (
                i.total_amount
                for i in invoices
                if i.client_id in client_ids and i.status == InvoiceStatus.PAID
            ),
            ZERO,
        )
        project_count = sum(1 for p in projects if p.client_id in client_ids)
        if clients:
            avg_projects = (Decimal(project_count) / Decimal(len(clients))).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_EVEN
            )
        else:
            avg_projects = Decimal("0.00")

        return ClientStats(
            total_clients=len(clients),
            active_clients=sum(1 for c in clients if c.status == ClientStatus.ACTIVE),
            archived_clients=sum(1 for c in clients if c.status == ClientStatus.ARCHIVED),
            recurring_clients=sum(
                1 for c in clients if c.client_category == ClientCategory.RECURRING
            ),
            high_value_clients=sum(
                1 for c in clients if c.client_category == ClientCategory.HIGH_VALUE
            ),
            total_revenue=quantize_amount(total_revenue),
            avg_projects_per_client=avg_projects,
        )


# Istanza singleton del service
report_service = ReportService()

compute_aging_report = ReportService.compute_aging_report
compute_dashboard_stats = ReportService.compute_dashboard_stats
compute_client_summary = ReportService.compute_client_summary
compute_client_stats = ReportService.compute_client_stats
