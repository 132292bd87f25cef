from typing import Any


class CellcastError(Exception):
    pass


class ConfigurationError(CellcastError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Invalid configuration for '{field}': {message}")
        self.field = field


class RequestValidationError(CellcastError):
    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class TransportError(CellcastError):
    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ResponseError(CellcastError):
    def __init__(self, message: str, body: str = "", url: str | None = None):
        super().__init__(message)
        self.body = body
        self.url = url


class RequestCancelled(CellcastError):
    pass


class ApiError(CellcastError):
    """Vendor error with the envelope's ``meta.code``, ``meta.status`` and ``msg`` kept intact."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        status: str | None = None,
        http_status: int | None = None,
        envelope: Any = None,
        url: str | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status = status
        self.http_status = http_status
        self.envelope = envelope
        self.url = url
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = [str(p) for p in (self.code, self.status) if p is not None]
        if parts:
            return f"Cellcast API error ({' '.join(parts)}): {self.message}"
        return f"Cellcast API error: {self.message}"

    @property
    def retryable(self) -> bool:
        return False


class RateLimitError(ApiError):
    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs: Any):
        self.retry_after = retry_after
        super().__init__(message, **kwargs)

    @property
    def retryable(self) -> bool:
        return True


class ServerError(ApiError):
    @property
    def retryable(self) -> bool:
        return True


class ApplicationError(ApiError):
    pass


class DeliveryTimeout(CellcastError, TimeoutError):
    pass
