"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Freelance Manager (Gestionale Freelance)

Definisce engine, session factory e gestione delle sessioni per il
document store. L'engine viene creato alla prima richiesta.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from freelance_billing.core.config import settings

# Logger per questo modulo
logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


# ------------------------------------------------------------
# Engine Async SQLAlchemy 2.0
# ------------------------------------------------------------
def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Crea un engine async.

    I parametri del pool si applicano solo ai database server (PostgreSQL):
    SQLite usa il pool predefinito del driver.

    Args:
        database_url: URL del database (default: settings.database_url)
    """
    url = database_url or settings.database_url
    options: dict = {
        "echo": settings.debug,  # Log query in modalità debug
        "pool_pre_ping": True,   # Verifica connessione prima di usarla
    }
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return create_async_engine(url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Restituisce l'engine dell'applicazione, creandolo alla prima chiamata."""
    global _engine, _session_factory
    if _engine is None:
        _engine = create_engine()
        _session_factory = create_session_factory(_engine)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    get_engine()
    return _session_factory


# ------------------------------------------------------------
# Sessioni
# ------------------------------------------------------------
@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Sessione transazionale: commit all'uscita, rollback in caso di errore.

    Example:
        async with session_scope() as db:
            await document_store.save_invoice(db, invoice)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """
    Inizializza il database.

    Verifica la connessione e crea le tabelle mancanti.
    """
    # Import dei modelli per registrarli su Base.metadata
    from freelance_billing.models import Base

    engine = engine or get_engine()
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """
    Chiude le connessioni al database.

    Da chiamare durante lo shutdown dell'applicazione.
    """
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Connessioni database chiuse")
