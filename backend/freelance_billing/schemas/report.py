"""
Schemas Pydantic per i Report
Progetto: Freelance Manager (Gestionale Freelance)

Contiene:
- AgingBucketLabel, AgingBucket, AgingEntry, ClientAgingReport: anzianità crediti
- QuoteOverview, InvoiceOverview, ProjectOverview: riepiloghi per dashboard
- DashboardStats: statistiche di portafoglio

Sono valori derivati in sola lettura per il livello di presentazione.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from freelance_billing.schemas.billing import InvoiceStatus


# -------------------------------------------------------------------
# Aging
# -------------------------------------------------------------------

class AgingBucketLabel(str, Enum):
    """Fasce di anzianità del credito, in giorni dopo la scadenza."""
    CURRENT = "current"
    DAYS_1_30 = "1-30"
    DAYS_31_60 = "31-60"
    DAYS_61_90 = "61-90"
    OVER_90 = "90+"


class AgingBucket(BaseModel):
    """Residuo complessivo di una fascia di anzianità."""

    label: AgingBucketLabel
    amount: Decimal = Field(..., description="Somma dei residui nella fascia")
    invoice_count: int = Field(..., ge=0, serialization_alias="invoiceCount")

    model_config = ConfigDict(frozen=True)


class AgingEntry(BaseModel):
    """Dettaglio di anzianità di una singola fattura."""

    invoice_id: uuid.UUID = Field(..., serialization_alias="invoiceId")
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    issue_date: date = Field(..., serialization_alias="issueDate")
    due_date: date = Field(..., serialization_alias="dueDate")
    total_amount: Decimal = Field(..., serialization_alias="totalAmount")
    amount_paid: Decimal = Field(..., serialization_alias="amountPaid")
    balance_due: Decimal = Field(..., serialization_alias="balanceDue")
    status: InvoiceStatus
    effective_status: InvoiceStatus = Field(..., serialization_alias="effectiveStatus")
    bucket: AgingBucketLabel
    days_overdue: int = Field(..., ge=0, serialization_alias="daysOverdue")

    model_config = ConfigDict(frozen=True)


class ClientAgingReport(BaseModel):
    """Anzianità dei crediti di un cliente, sempre con tutte e cinque le fasce."""

    client_id: uuid.UUID = Field(..., serialization_alias="clientId")
    currency: str
    buckets: list[AgingBucket]
    total_outstanding: Decimal = Field(..., serialization_alias="totalOutstanding")
    entries: list[AgingEntry] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def bucket(self, label: AgingBucketLabel) -> AgingBucket:
        """Restituisce la fascia richiesta."""
        for bucket in self.buckets:
            if bucket.label == label:
                return bucket
        raise KeyError(label)


# -------------------------------------------------------------------
# Dashboard
# -------------------------------------------------------------------

class QuoteOverview(BaseModel):
    """Conteggi e valori dei preventivi per stato effettivo."""

    total: int
    draft: int
    pending: int
    accepted: int
    rejected: int
    expired: int
    total_value: Decimal = Field(..., serialization_alias="totalValue")
    accepted_value: Decimal = Field(..., serialization_alias="acceptedValue")
    pending_value: Decimal = Field(..., serialization_alias="pendingValue")

    model_config = ConfigDict(frozen=True)


class InvoiceOverview(BaseModel):
    """Conteggi e importi delle fatture per stato effettivo."""

    total: int
    draft: int
    pending: int
    paid: int
    overdue: int
    cancelled: int
    total_amount: Decimal = Field(..., serialization_alias="totalAmount")
    total_paid: Decimal = Field(..., serialization_alias="totalPaid")
    total_due: Decimal = Field(..., serialization_alias="totalDue")
    overdue_amount: Decimal = Field(..., serialization_alias="overdueAmount")

    model_config = ConfigDict(frozen=True)


class ProjectOverview(BaseModel):
    """Conteggi dei progetti per stato."""

    total: int
    active: int
    completed: int
    on_hold: int = Field(..., serialization_alias="onHold")
    cancelled: int

    model_config = ConfigDict(frozen=True)


class DashboardStats(BaseModel):
    """Statistiche di portafoglio per la dashboard."""

    total_quotes: int = Field(..., serialization_alias="totalQuotes")
    total_invoices: int = Field(..., serialization_alias="totalInvoices")
    total_projects: int = Field(..., serialization_alias="totalProjects")
    total_clients: int = Field(..., serialization_alias="totalClients")
    total_revenue: Decimal = Field(..., serialization_alias="totalRevenue")
    conversion_rate: int = Field(
        ...,
        ge=0,
        le=100,
        description="Preventivi accettati / totali, in percentuale intera",
        serialization_alias="conversionRate",
    )
    pending_quotes: int = Field(..., serialization_alias="pendingQuotes")
    overdue_invoices: int = Field(..., serialization_alias="overdueInvoices")
    active_projects: int = Field(..., serialization_alias="activeProjects")
    total_paid_amount: Decimal = Field(..., serialization_alias="totalPaidAmount")
    total_balance_due: Decimal = Field(..., serialization_alias="totalBalanceDue")
    quotes: QuoteOverview
    invoices: InvoiceOverview
    projects: ProjectOverview

    model_config = ConfigDict(frozen=True)
