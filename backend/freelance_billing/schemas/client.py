"""
Schemas Pydantic per Clienti e Progetti
Progetto: Freelance Manager (Gestionale Freelance)

Clienti e progetti sono input in sola lettura per i report:
il billing core non li modifica mai.

Contiene anche gli output dei report per cliente (ClientSummary, ClientStats).
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class ClientStatus(str, Enum):
    """Stato anagrafico del cliente."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class ClientCategory(str, Enum):
    """Categoria commerciale del cliente."""
    RECURRING = "recurring"
    ONE_TIME = "one-time"
    PROSPECT = "prospect"
    HIGH_VALUE = "high-value"
    LOW_VALUE = "low-value"


class ProjectStatus(str, Enum):
    """Stato di un progetto."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class PaymentBehavior(str, Enum):
    """Classificazione della puntualità storica nei pagamenti."""
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"


class EngagementLevel(str, Enum):
    """Livello di attività del cliente."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RevenueTier(str, Enum):
    """Fascia di fatturato incassato."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# -------------------------------------------------------------------
# Input in sola lettura
# -------------------------------------------------------------------

class Client(BaseModel):
    """Anagrafica cliente."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    company_name: str = Field(default="", max_length=255)
    contact_name: str = Field(default="", max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    status: ClientStatus = Field(default=ClientStatus.ACTIVE)
    client_category: Optional[ClientCategory] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def display_name(self) -> str:
        """Ragione sociale se presente, altrimenti il referente."""
        return self.company_name or self.contact_name


class Project(BaseModel):
    """Progetto associato a un cliente."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    client_id: uuid.UUID
    name: str = Field(default="", max_length=255)
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE)
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    model_config = ConfigDict(frozen=True, from_attributes=True)


# -------------------------------------------------------------------
# Output dei report
# -------------------------------------------------------------------

class ClientSummary(BaseModel):
    """
    Riepilogo finanziario e relazionale di un cliente.

    Tutti i campi sono derivati al momento della richiesta dall'insieme
    di documenti e progetti forniti: nulla viene persistito.
    """

    client_id: uuid.UUID = Field(..., serialization_alias="clientId")
    company_name: str = Field(..., serialization_alias="companyName")
    contact_name: str = Field(..., serialization_alias="contactName")
    status: ClientStatus
    revenue_tier: RevenueTier = Field(..., serialization_alias="revenueTier")
    project_count: int = Field(..., serialization_alias="projectCount")
    active_project_count: int = Field(..., serialization_alias="activeProjectCount")
    quote_count: int = Field(..., serialization_alias="quoteCount")
    invoice_count: int = Field(..., serialization_alias="invoiceCount")
    total_invoiced: Decimal = Field(..., serialization_alias="totalInvoiced")
    total_paid_amount: Decimal = Field(..., serialization_alias="totalPaidAmount")
    outstanding_balance: Decimal = Field(..., serialization_alias="outstandingBalance")
    on_time_payment_rate: Optional[Decimal] = Field(
        default=None,
        description="Frazione di fatture pagate entro la scadenza (None senza storico)",
        serialization_alias="onTimePaymentRate",
    )
    payment_behavior: PaymentBehavior = Field(..., serialization_alias="paymentBehavior")
    has_overdue_invoices: bool = Field(..., serialization_alias="hasOverdueInvoices")
    has_pending_quotes: bool = Field(..., serialization_alias="hasPendingQuotes")
    last_payment_date: Optional[date] = Field(default=None, serialization_alias="lastPaymentDate")
    last_invoice_date: Optional[date] = Field(default=None, serialization_alias="lastInvoiceDate")
    last_activity_date: Optional[date] = Field(default=None, serialization_alias="lastActivityDate")
    engagement_level: EngagementLevel = Field(..., serialization_alias="engagementLevel")

    model_config = ConfigDict(frozen=True)


class ClientStats(BaseModel):
    """Statistiche aggregate sul portafoglio clienti."""

    total_clients: int = Field(..., serialization_alias="totalClients")
    active_clients: int = Field(..., serialization_alias="activeClients")
    archived_clients: int = Field(..., serialization_alias="archivedClients")
    recurring_clients: int = Field(..., serialization_alias="recurringClients")
    high_value_clients: int = Field(..., serialization_alias="highValueClients")
    total_revenue: Decimal = Field(..., serialization_alias="totalRevenue")
    avg_projects_per_client: Decimal = Field(..., serialization_alias="avgProjectsPerClient")

    model_config = ConfigDict(frozen=True)
