"""
Mixin SQLAlchemy per modelli
Progetto: Freelance Manager (Gestionale Freelance)

Mixin riutilizzabili per aggiungere funzionalità comuni ai modelli.
"""

import datetime
import uuid

from sqlalchemy import DateTime, Integer, Uuid
from sqlalchemy import event
from sqlalchemy.orm import Mapped, mapped_column, Session


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class TimestampMixin:
    """
    Mixin per gestione automatica timestamp di memorizzazione.

    Aggiunge i campi:
    - stored_at: data/ora del primo salvataggio del record
    - updated_at: data/ora dell'ultimo salvataggio del record

    Sono timestamp della persistenza, distinti da created_at/updated_at
    dello snapshot che restano nel payload.

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            ...
    """

    stored_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="Data/ora di primo salvataggio del record",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="Data/ora ultimo salvataggio del record",
    )


class UUIDMixin:
    """
    Mixin per ID UUID.

    L'id coincide con quello dello snapshot pydantic: il default viene
    usato solo se il record è creato senza id esplicito.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="UUID primary key",
    )


class VersionMixin:
    """
    Mixin per la concorrenza ottimistica.

    Ogni salvataggio riuscito incrementa version di 1; un aggiornamento
    con versione non corrispondente non modifica alcuna riga.
    """

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Versione del record (>= 1 una volta salvato)",
    )


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def update_timestamp(session: Session, flush_context, instances) -> None:
    """
    Event listener per aggiornare automaticamente il campo updated_at.

    Vale per i salvataggi tramite ORM (nuovi record e record modificati);
    gli UPDATE versionati del document store impostano updated_at
    esplicitamente.
    """
    now = utc_now()

    for obj in session.dirty:
        if isinstance(obj, TimestampMixin) and session.is_modified(
            obj, include_collections=False
        ):
            obj.updated_at = now

    for obj in session.new:
        if isinstance(obj, TimestampMixin):
            obj.updated_at = now
