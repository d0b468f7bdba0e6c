"""Error taxonomy for chat backends and the user-facing messages for each kind.

Backends raise (or let through) whatever their transport produces. Before a
failure reaches the user it goes through ``classify_error`` and
``error_message`` so both backends report the same failure the same way.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to the user."""

    CONFIG_MISSING = "config_missing"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_FAILURE = "transport_failure"


class ChatError(Exception):
    """Base exception for chat backend errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigMissingError(ChatError):
    """No credential was configured for the process."""

    kind = ErrorKind.CONFIG_MISSING


class UnauthorizedError(ChatError):
    """The backend rejected the credential."""

    kind = ErrorKind.UNAUTHORIZED


class RateLimitedError(ChatError):
    """The backend asked us to slow down."""

    kind = ErrorKind.RATE_LIMITED


class BackendResponseError(ChatError):
    """Non-2xx response or an unreadable response body."""

    pass


class UsageError(RuntimeError):
    """The caller broke the session contract (e.g. sent a text turn before start_chat).

    Never classified or streamed; always raised.
    """


MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.CONFIG_MISSING: (
        "Erro de configuração: nenhuma chave de API foi encontrada. "
        "Defina a variável de ambiente API_KEY e reinicie o aplicativo."
    ),
    ErrorKind.UNAUTHORIZED: (
        "Erro de autenticação. Verifique se a chave de API (API_KEY) está correta."
    ),
    ErrorKind.RATE_LIMITED: (
        "Muitas requisições. O serviço está ocupado, tente novamente em alguns instantes."
    ),
    ErrorKind.TRANSPORT_FAILURE: (
        "Desculpe, ocorreu um erro ao conectar com o serviço de IA. Tente novamente."
    ),
}

_UNAUTHORIZED_STATUSES = {401, 403}
_RATE_LIMITED_STATUSES = {429}

_UNAUTHORIZED_MARKERS = (
    "api key",
    "api_key",
    "unauthorized",
    "permission_denied",
    "invalid authentication",
)
_RATE_LIMITED_MARKERS = ("429", "rate limit", "resource_exhausted", "quota")


def _status_of(error: BaseException) -> int | None:
    """Pull a numeric status from the error or the response it carries."""
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(error: BaseException) -> ErrorKind:
    """Map a failure to an ErrorKind.

    Checks our own exception types first, then a numeric status, then
    substrings of the message. Anything unmatched is a transport failure.
    """
    if isinstance(error, ChatError) and error.kind is not ErrorKind.TRANSPORT_FAILURE:
        return error.kind

    status = _status_of(error)
    if status in _UNAUTHORIZED_STATUSES:
        return ErrorKind.UNAUTHORIZED
    if status in _RATE_LIMITED_STATUSES:
        return ErrorKind.RATE_LIMITED

    text = str(error).lower()
    if any(marker in text for marker in _UNAUTHORIZED_MARKERS):
        return ErrorKind.UNAUTHORIZED
    if any(marker in text for marker in _RATE_LIMITED_MARKERS):
        return ErrorKind.RATE_LIMITED

    return ErrorKind.TRANSPORT_FAILURE


def error_message(error: BaseException | ErrorKind) -> str:
    """User-facing message for a failure or a failure kind."""
    kind = error if isinstance(error, ErrorKind) else classify_error(error)
    return MESSAGES[kind]
