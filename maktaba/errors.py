"""Error taxonomy for calls to the language-model service.

Every error carries two texts: ``str(exc)`` is the technical detail that goes
to the log, ``exc.message`` is the short Arabic sentence shown to the user.
Subclasses of :class:`CredentialFailure` are the ones the rotation loops treat
as "this key did not work, try the next one".
"""

_MSG_UNAVAILABLE = "عذراً، الخدمة غير متوفرة حالياً. يرجى المحاولة لاحقاً."
_MSG_BUSY = "عذراً، الخدمة مشغولة حالياً. يرجى المحاولة بعد قليل."
_MSG_FAILED = "عذراً، لم أتمكن من معالجة طلبك. يرجى المحاولة مرة أخرى."
_MSG_LIVE_FAILED = "فشل الاتصال بجميع المفاتيح"
_MSG_DISCONNECTED = "انقطع الاتصال"


class MaktabaError(Exception):
    """Base class for every error surfaced to the conversation."""

    user_message = _MSG_FAILED

    def __init__(self, detail: str = "", message: str | None = None):
        super().__init__(detail or self.__class__.__name__)
        self.message = message or self.user_message


class NoCredentials(MaktabaError):
    """The credential pool is empty; nothing was sent."""

    user_message = _MSG_UNAVAILABLE


class CredentialFailure(MaktabaError):
    """One attempt with one credential failed."""

    def __init__(self, detail: str = "", status_code: int | None = None):
        super().__init__(detail)
        self.status_code = status_code


class QuotaExceeded(CredentialFailure):
    """HTTP 429 - rate limit or quota for this key."""


class AuthRejected(CredentialFailure):
    """HTTP 402/403 - key rejected or billing exhausted."""


class ServerError(CredentialFailure):
    """Any other non-2xx status."""


class EmptyResponse(CredentialFailure):
    """2xx response without a usable text part."""


class TransportError(CredentialFailure):
    """Network failure or timeout before a response arrived."""


class ServiceBusy(MaktabaError):
    """Every credential was tried once for a text request and none worked."""

    user_message = _MSG_BUSY

    def __init__(self, last_error: Exception | None = None, attempts: int = 0):
        detail = f"all {attempts} credential(s) failed"
        if last_error is not None:
            detail += f"; last error: {last_error}"
        super().__init__(detail)
        self.last_error = last_error
        self.attempts = attempts


class AllCredentialsFailed(ServiceBusy):
    """Every credential was tried for a live handshake and none connected."""

    user_message = _MSG_LIVE_FAILED


class LiveTransportError(MaktabaError):
    """The live session broke after it was established."""

    user_message = _MSG_DISCONNECTED
