from dataclasses import dataclass, field
from typing import Any, Union

from cellcastapi.config import ResponseFormat

SUCCESS_STATUS = "SUCCESS"
OVER_LIMIT_STATUS = "OVER_LIMIT"


def meta_of(envelope: Any) -> dict[str, Any]:
    if isinstance(envelope, dict) and isinstance(envelope.get("meta"), dict):
        return envelope["meta"]
    return {}


def is_envelope(body: Any) -> bool:
    return isinstance(body, dict) and "status" in meta_of(body)


def is_success(envelope: Any) -> bool:
    if isinstance(envelope, list):
        return bool(envelope) and all(is_success(item) for item in envelope)
    return meta_of(envelope).get("status") == SUCCESS_STATUS


@dataclass(frozen=True)
class EnhancedResponse:
    success: bool
    status_code: int | None
    status: str | None
    message: str | None
    data: Any = None
    low_balance_warning: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        fields = {
            "status_code": self.status_code,
            "status": self.status,
            "message": self.message,
            "data": self.data,
            "low_balance_warning": self.low_balance_warning,
        }
        result.update({key: value for key, value in fields.items() if value is not None})
        result.update(self.extra)
        return result

    def __repr__(self) -> str:
        return f"<EnhancedResponse success={self.success} status={self.status} message={self.message}>"


@dataclass(frozen=True)
class RawResult:
    envelope: Any
    success: bool
    format: ResponseFormat = field(default=ResponseFormat.RAW, init=False)


@dataclass(frozen=True)
class EnhancedResult:
    response: EnhancedResponse
    format: ResponseFormat = field(default=ResponseFormat.ENHANCED, init=False)

    @property
    def success(self) -> bool:
        return self.response.success


@dataclass(frozen=True)
class BothResult:
    raw: RawResult
    enhanced: EnhancedResponse
    format: ResponseFormat = field(default=ResponseFormat.BOTH, init=False)

    @property
    def success(self) -> bool:
        return self.raw.success


NormalizedResult = Union[RawResult, EnhancedResult, BothResult]
