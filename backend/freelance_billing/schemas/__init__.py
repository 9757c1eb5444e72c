"""
Schemas Pydantic per il progetto Freelance Manager

Questo modulo contiene tutti gli schemi Pydantic utilizzati come snapshot
immutabili dei documenti e come output dei report.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from freelance_billing.schemas import Invoice, Quote, ClientSummary

from freelance_billing.schemas.billing import (
    BillingDocument,
    DocumentTotals,
    DocumentType,
    Invoice,
    InvoiceStatus,
    InvoiceSummary,
    LedgerResult,
    LineItem,
    OverpaymentWarning,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Quote,
    QuoteHistoryAction,
    QuoteHistoryEntry,
    QuoteStatus,
    QuoteSummary,
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

__all__ = [
    # Billing
    "BillingDocument",
    "DocumentTotals",
    "DocumentType",
    "Invoice",
    "InvoiceStatus",
    "InvoiceSummary",
    "LedgerResult",
    "LineItem",
    "OverpaymentWarning",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Quote",
    "QuoteHistoryAction",
    "QuoteHistoryEntry",
    "QuoteStatus",
    "QuoteSummary",
    # Client
    "Client",
    "ClientCategory",
    "ClientStats",
    "ClientStatus",
    "ClientSummary",
    "EngagementLevel",
    "PaymentBehavior",
    "Project",
    "ProjectStatus",
    "RevenueTier",
    # Report
    "AgingBucket",
    "AgingBucketLabel",
    "AgingEntry",
    "ClientAgingReport",
    "DashboardStats",
    "InvoiceOverview",
    "ProjectOverview",
    "QuoteOverview",
]
