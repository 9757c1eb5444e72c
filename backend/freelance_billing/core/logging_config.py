"""
Configurazione Logging
Progetto: Freelance Manager (Gestionale Freelance)

Il billing core non configura il logging all'import: ogni modulo usa
`logging.getLogger(__name__)` e l'applicazione ospite chiama
`configure_logging()` una sola volta all'avvio.
"""

import logging
from typing import Optional

from freelance_billing.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Applica la configurazione di logging del progetto.

    Args:
        level: Livello di logging; se None usa settings.log_level
    """
    logging.basicConfig(
        level=level or settings.log_level,
        format=LOG_FORMAT,
    )
    logging.getLogger(__name__).debug(
        "Logging configurato per %s v%s", settings.app_name, settings.app_version
    )
