"""
Eccezioni Custom per l'applicazione.
Progetto: Freelance Manager (Gestionale Freelance)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input
- BusinessValidationError: violazioni delle regole di business (importi negativi,
  aliquote fuori range, valuta incoerente)

Ogni operazione che solleva una di queste eccezioni lascia invariato lo
snapshot ricevuto in input.
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "InvalidTransitionError",
    "ConflictError",
    "AuthorizationError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code suggerito al livello di trasporto
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il chiamante
    """

    # Default values - overridden in subclasses
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al chiamante (default: None)
        """
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """
    Eccezione sollevata quando una risorsa non viene trovata.

    Utilizzata per documenti assenti nello store o pagamenti
    inesistenti nel registro di una fattura.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "La quantità non può essere negativa"
        - "L'aliquota deve essere compresa tra 0 e 1"
        - "La valuta del pagamento non coincide con quella della fattura"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class InvalidTransitionError(AppException):
    """
    Eccezione sollevata per transizioni di stato non consentite.

    Lo stato corrente del documento resta invariato. In `extra` sono
    riportati lo stato corrente e quello richiesto.

    Esempi di utilizzo:
        - "Transizione da 'accepted' a 'sent' non consentita"
        - "Impossibile registrare pagamenti su una fattura annullata"
    """

    status_code: int = 409
    error_code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        detail: str = "Transizione di stato non consentita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        *,
        current_status: Optional[str] = None,
        target_status: Optional[str] = None,
    ) -> None:
        if current_status is not None or target_status is not None:
            extra = {
                **(extra or {}),
                "current_status": current_status,
                "target_status": target_status,
            }
        super().__init__(detail, error_code, extra)
        self.current_status = current_status
        self.target_status = target_status


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di scrittura concorrente.

    Utilizzata dallo store quando la versione dello snapshot non coincide
    più con quella persistita: il chiamante deve rileggere il documento
    e ripetere l'operazione. Non viene mai effettuato un merge implicito.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflitto di stato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class AuthorizationError(AppException):
    """
    Eccezione sollevata per accesso non autorizzato.

    Utilizzata quando un utente diverso dal proprietario tenta di
    modificare le righe o le note di un documento.
    """

    status_code: int = 403
    error_code: str = "FORBIDDEN"

    def __init__(
        self,
        detail: str = "Accesso non autorizzato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)
