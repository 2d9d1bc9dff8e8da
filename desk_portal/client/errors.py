from __future__ import annotations

DEFAULT_MESSAGE = 'Bir hata oluştu!'
NETWORK_MESSAGE = 'Sunucuya bağlanılamadı. Lütfen internet bağlantınızı kontrol edin.'
TIMEOUT_MESSAGE = 'İstek zaman aşımına uğradı. Lütfen tekrar deneyin.'
BUSY_MESSAGE = 'Önceki işlem devam ediyor. Lütfen bekleyin.'

STATUS_MESSAGES = {
    401: 'Oturum süresi doldu. Lütfen tekrar giriş yapın.',
    403: 'Bu işlem için yetkiniz bulunmamaktadır.',
    404: 'İstenen kaynak bulunamadı.',
    500: 'Sunucu hatası oluştu. Lütfen daha sonra tekrar deneyin.',
}


class ClientError(Exception):
    pass


class ApiError(ClientError):
    def __init__(self, status: int, payload: dict | None = None):
        self.status = status
        self.payload = payload or {}
        super().__init__(get_error_message(self))

    @property
    def code(self) -> str | None:
        return self.payload.get('error')


class NetworkError(ClientError):
    retryable = True

    def __init__(self, reason: object = None, *, timeout: bool = False):
        self.reason = reason
        self.timeout = timeout
        super().__init__(TIMEOUT_MESSAGE if timeout else NETWORK_MESSAGE)


class BusyError(ClientError):
    def __init__(self) -> None:
        super().__init__(BUSY_MESSAGE)


def get_error_message(error: BaseException | None, fallback: str = DEFAULT_MESSAGE) -> str:
    """Pick the message shown to the user: server ``message``, then ``error``, then a status default."""
    if isinstance(error, ApiError):
        message = error.payload.get('message')
        if message:
            return str(message)
        code = error.payload.get('error')
        if code:
            return str(code)
        if error.status >= 500:
            return STATUS_MESSAGES[500]
        return STATUS_MESSAGES.get(error.status, f'İstek başarısız oldu (durum kodu {error.status}).')
    if error is not None and str(error):
        return str(error)
    return fallback
