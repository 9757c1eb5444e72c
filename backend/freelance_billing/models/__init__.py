"""
Modelli Database SQLAlchemy
Progetto: Freelance Manager (Gestionale Freelance)

Import centralizzato di tutti i modelli per create_all e usage generico.

Modelli:
- BillingDocumentRecord: preventivi e fatture persistiti come snapshot JSON
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


# Import modelli implementati
from freelance_billing.models.billing_document import BillingDocumentRecord  # noqa: E402

# Esportazione di tutti i modelli
__all__ = [
    "Base",
    "BillingDocumentRecord",
]
