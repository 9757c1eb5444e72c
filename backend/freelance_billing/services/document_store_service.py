"""
Service Layer per la Persistenza dei Documenti
Progetto: Freelance Manager (Gestionale Freelance)

Salva e rilegge snapshot di preventivi e fatture con concorrenza ottimistica.

Regole:
- Uno snapshot con version 0 non è mai stato salvato: viene inserito con version 1
- Altrimenti UPDATE ... WHERE id = :id AND version = :version, con version + 1
- Nessuna riga aggiornata significa che un'altra scrittura ha già consumato
  quella versione: ConflictError, il chiamante rilegge e riprova
- Il service esegue solo flush: commit e rollback della transazione sono
  responsabilità del chiamante (vedi core.database.session_scope)
"""

import logging
import uuid
from typing import Optional, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from freelance_billing.core.exceptions import ConflictError, NotFoundError
from freelance_billing.models.billing_document import BillingDocumentRecord
from freelance_billing.models.mixins import utc_now
from freelance_billing.schemas.billing import (
    BillingDocument,
    DocumentType,
    Invoice,
    Quote,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

DocumentT = TypeVar("DocumentT", bound=BillingDocument)

LABELS = {DocumentType.QUOTE: "Preventivo", DocumentType.INVOICE: "Fattura"}


class DocumentStoreService:
    """
    Service per la persistenza di preventivi e fatture.

    Gli snapshot entrano e escono come modelli pydantic; il record
    SQLAlchemy non lascia mai il service.
    """

    # ------------------------------------------------------------
    # Conversioni
    # ------------------------------------------------------------
    @staticmethod
    def _dump(document: BillingDocument) -> dict:
        """Serializza lo snapshot escludendo i campi calcolati."""
        computed = set(type(document).model_computed_fields)
        return document.model_dump(mode="json", exclude=computed)

    @staticmethod
    def _load(model: Type[DocumentT], record: BillingDocumentRecord) -> DocumentT:
        return model.model_validate({**record.payload, "version": record.version})

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def _get(
        self,
        db: AsyncSession,
        document_type: DocumentType,
        document_id: uuid.UUID,
    ) -> BillingDocumentRecord:
        query = select(BillingDocumentRecord).where(
            BillingDocumentRecord.id == document_id,
            BillingDocumentRecord.document_type == document_type.value,
        )
        result = await db.execute(query)
        record = result.scalar_one_or_none()

        if record is None:
            logger.warning("%s non trovato: %s", LABELS[document_type], document_id)
            raise NotFoundError(
                f"{LABELS[document_type]} con ID {document_id} non trovato"
            )
        return record

    async def _list(
        self,
        db: AsyncSession,
        document_type: DocumentType,
        client_id: Optional[uuid.UUID] = None,
    ) -> list[BillingDocumentRecord]:
        query = select(BillingDocumentRecord).where(
            BillingDocumentRecord.document_type == document_type.value
        )
        if client_id is not None:
            query = query.where(BillingDocumentRecord.client_id == client_id)
        query = query.order_by(
            BillingDocumentRecord.stored_at.asc(), BillingDocumentRecord.id.asc()
        )

        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_invoice(self, db: AsyncSession, invoice_id: uuid.UUID) -> Invoice:
        """
        Recupera una fattura tramite ID.

        Raises:
            NotFoundError: Se la fattura non esiste
        """
        record = await self._get(db, DocumentType.INVOICE, invoice_id)
        return self._load(Invoice, record)

    async def get_quote(self, db: AsyncSession, quote_id: uuid.UUID) -> Quote:
        """
        Recupera un preventivo tramite ID.

        Raises:
            NotFoundError: Se il preventivo non esiste
        """
        record = await self._get(db, DocumentType.QUOTE, quote_id)
        return self._load(Quote, record)

    async def list_invoices(
        self, db: AsyncSession, client_id: Optional[uuid.UUID] = None
    ) -> list[Invoice]:
        """Elenca le fatture, opzionalmente filtrate per cliente."""
        records = await self._list(db, DocumentType.INVOICE, client_id)
        return [self._load(Invoice, r) for r in records]

    async def list_quotes(
        self, db: AsyncSession, client_id: Optional[uuid.UUID] = None
    ) -> list[Quote]:
        """Elenca i preventivi, opzionalmente filtrati per cliente."""
        records = await self._list(db, DocumentType.QUOTE, client_id)
        return [self._load(Quote, r) for r in records]

    async def list_numbers(
        self, db: AsyncSession, document_type: DocumentType, prefix: str = ""
    ) -> list[str]:
        """
        Elenca i numeri già assegnati a un tipo di documento.

        Args:
            db: Sessione database
            document_type: Tipo di documento
            prefix: Filtra i numeri che iniziano con il prefisso (es. INV-202506-)

        Returns:
            list[str]: Numeri assegnati, in ordine decrescente
        """
        query = select(BillingDocumentRecord.number).where(
            BillingDocumentRecord.document_type == document_type.value,
            BillingDocumentRecord.number.is_not(None),
        )
        if prefix:
            query = query.where(BillingDocumentRecord.number.like(f"{prefix}%"))
        query = query.order_by(BillingDocumentRecord.number.desc())

        result = await db.execute(query)
        return list(result.scalars().all())

    # ------------------------------------------------------------
    # Scritture
    # ------------------------------------------------------------
    async def _save(
        self,
        db: AsyncSession,
        document_type: DocumentType,
        document: DocumentT,
    ) -> DocumentT:
        """
        Salva uno snapshot con controllo di versione.

        Steps:
        1. Calcola la nuova versione (version + 1)
        2. version 0: INSERT del nuovo record
        3. altrimenti: UPDATE condizionato alla versione letta
        4. Nessuna riga aggiornata o vincolo violato -> ConflictError

        Returns:
            Snapshot salvato, con la nuova versione

        Raises:
            ConflictError: versione non più corrente o record duplicato
        """
        label = LABELS[document_type]
        stored = document.model_copy(update={"version": document.version + 1})
        values = {
            "user_id": stored.user_id,
            "client_id": stored.client_id,
            "number": stored.number or None,
            "status": stored.status.value,
            "currency": stored.currency,
            "total_amount": stored.total_amount,
            "version": stored.version,
            "payload": self._dump(stored),
        }

        try:
            if document.version == 0:
                db.add(
                    BillingDocumentRecord(
                        id=stored.id, document_type=document_type.value, **values
                    )
                )
                await db.flush()
            else:
                stmt = (
                    update(BillingDocumentRecord)
                    .where(
                        BillingDocumentRecord.id == document.id,
                        BillingDocumentRecord.document_type == document_type.value,
                        BillingDocumentRecord.version == document.version,
                    )
                    .values(updated_at=utc_now(), **values)
                    .execution_options(synchronize_session=False)
                )
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    logger.warning(
                        "Conflitto di versione su %s %s (versione %s)",
                        label.lower(),
                        document.id,
                        document.version,
                    )
                    raise ConflictError(
                        f"{label} {document.id} modificato da un'altra operazione: "
                        "rileggere il documento e riprovare",
                        extra={"document_id": str(document.id), "version": document.version},
                    )

        except IntegrityError as e:
            logger.warning(
                "Errore IntegrityError salvataggio %s %s: %s",
                label.lower(),
                document.id,
                e.orig,
            )
            await db.rollback()
            raise ConflictError(
                f"{label} {document.id} già esistente o in conflitto",
                extra={"document_id": str(document.id), "version": document.version},
            )

        logger.info("%s %s salvato (versione %s)", label, stored.id, stored.version)
        return stored

    async def save_invoice(self, db: AsyncSession, invoice: Invoice) -> Invoice:
        """Salva una fattura. Vedi _save per le regole di versione."""
        return await self._save(db, DocumentType.INVOICE, invoice)

    async def save_quote(self, db: AsyncSession, quote: Quote) -> Quote:
        """Salva un preventivo. Vedi _save per le regole di versione."""
        return await self._save(db, DocumentType.QUOTE, quote)


# Istanza singleton del service
document_store = DocumentStoreService()
