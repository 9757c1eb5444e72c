"""
Modello SQLAlchemy per i Documenti di Fatturazione
Progetto: Freelance Manager (Gestionale Freelance)

Preventivi e fatture sono salvati in un'unica tabella: lo snapshot
pydantic completo è nel payload JSON, mentre le colonne indicizzate
duplicano i campi usati per filtrare ed elencare.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, Index, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from freelance_billing.models import Base
from freelance_billing.models.mixins import TimestampMixin, UUIDMixin, VersionMixin


class BillingDocumentRecord(Base, UUIDMixin, TimestampMixin, VersionMixin):
    """
    Record persistito di un preventivo o di una fattura.

    Attributes:
        id: UUID del documento (uguale a quello dello snapshot)
        document_type: 'quote' o 'invoice'
        user_id: UUID del proprietario
        client_id: UUID del cliente
        number: Numero documento
        status: Stato persistito
        currency: Valuta ISO 4217
        total_amount: Totale documento al momento del salvataggio
        version: Versione per concorrenza ottimistica
        payload: Snapshot serializzato (model_dump in modalità json)
    """

    __tablename__ = "billing_documents"

    document_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Tipo documento: quote, invoice",
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        doc="UUID del proprietario",
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        doc="UUID del cliente",
    )
    number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        doc="Numero documento",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Stato persistito",
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        doc="Valuta ISO 4217",
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 3),
        nullable=False,
        default=Decimal("0"),
        doc="Totale documento",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        doc="Snapshot completo del documento",
    )

    __table_args__ = (
        Index("ix_billing_documents_type_client", "document_type", "client_id"),
        Index("ix_billing_documents_user", "user_id"),
        Index("ix_billing_documents_status", "status"),
        CheckConstraint(
            "document_type IN ('quote', 'invoice')",
            name="ck_billing_documents_type",
        ),
        CheckConstraint("version >= 1", name="ck_billing_documents_version"),
    )

    def __repr__(self) -> str:
        return (
            f"<BillingDocumentRecord(id={self.id}, type={self.document_type}, "
            f"status={self.status}, version={self.version})>"
        )
