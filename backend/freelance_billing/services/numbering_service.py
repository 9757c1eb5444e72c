"""
Service Layer per la Numerazione dei Documenti
Progetto: Freelance Manager (Gestionale Freelance)

Numerazione progressiva mensile: PREFISSO-YYYYMM-NNN (es. INV-202506-001).
Il progressivo riparte da 001 ogni mese ed è calcolato dai numeri già
assegnati, passati esplicitamente dal chiamante.
"""

import datetime
import logging
import re
from typing import Iterable

from freelance_billing.core.exceptions import ConflictError

# Logger per questo modulo
logger = logging.getLogger(__name__)

QUOTE_PREFIX = "QUO"
INVOICE_PREFIX = "INV"

MAX_SEQUENCE = 999


def format_document_number(prefix: str, period: datetime.date, sequence: int) -> str:
    return f"{prefix}-{period:%Y%m}-{sequence:03d}"


def next_document_number(
    prefix: str,
    today: datetime.date,
    existing_numbers: Iterable[str],
) -> str:
    """
    Genera il prossimo numero documento del mese.

    Logica:
    1. Considera solo i numeri con lo stesso prefisso e lo stesso mese
    2. Prende il progressivo più alto
    3. Incrementa e formatta con zero-padding (001, 002, ..., 999)

    I numeri in altri formati (es. inseriti a mano) vengono ignorati.

    Args:
        prefix: Prefisso del tipo documento (QUO, INV)
        today: Data di riferimento per il mese
        existing_numbers: Numeri già assegnati

    Returns:
        str: Numero documento formattato

    Raises:
        ConflictError: Se si raggiunge il limite di 999 documenti nel mese
    """
    pattern = re.compile(rf"^{re.escape(prefix)}-{today:%Y%m}-(\d{{3}})$")
    last_number = 0
    for number in existing_numbers:
        match = pattern.match(number or "")
        if match:
            last_number = max(last_number, int(match.group(1)))

    next_number = last_number + 1
    if next_number > MAX_SEQUENCE:
        logger.error("Numerazione %s esaurita per il mese %s", prefix, f"{today:%Y%m}")
        raise ConflictError(
            f"Limite numerazione {prefix} raggiunto per il mese {today:%m/%Y}"
        )
    return format_document_number(prefix, today, next_number)


def next_quote_number(today: datetime.date, existing_numbers: Iterable[str]) -> str:
    return next_document_number(QUOTE_PREFIX, today, existing_numbers)


def next_invoice_number(today: datetime.date, existing_numbers: Iterable[str]) -> str:
    return next_document_number(INVOICE_PREFIX, today, existing_numbers)
