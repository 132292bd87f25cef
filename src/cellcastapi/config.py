import os
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from typing_extensions import Annotated

from cellcastapi.errors import ConfigurationError

DEFAULT_BASE_URL = "https://cellcast.com.au/api/v3/"


class ResponseFormat(str, Enum):
    RAW = "raw"
    ENHANCED = "enhanced"
    BOTH = "both"


class Configuration(BaseModel):
    """Immutable client settings.

    Values are checked once, when the object is built. A bad value raises
    ``ConfigurationError`` naming the offending field; nothing is re-checked
    during a call.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    response_format: ResponseFormat = ResponseFormat.ENHANCED
    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    retry_backoff_base_ms: Annotated[int, Field(gt=0)] = 1000
    max_backoff_ms: Annotated[int, Field(gt=0, le=300_000)] = 32_000
    chunk_size: Annotated[int, Field(gt=0)] = 1000
    low_balance_threshold: Annotated[float, Field(ge=0)] = 10
    sandbox_mode: bool = False
    default_sender_id: str | None = None
    auto_retry_failed: bool = True
    open_timeout: Annotated[float, Field(gt=0)] = 30
    read_timeout: Annotated[float, Field(gt=0)] = 60
    max_concurrent_batches: Annotated[int, Field(gt=0)] = 1
    base_url: str = DEFAULT_BASE_URL

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            error = e.errors(include_url=False)[0]
            field = ".".join(str(part) for part in error["loc"]) or "configuration"
            raise ConfigurationError(field, error["msg"]) from None

    @model_validator(mode="after")
    def validate_settings(self) -> "Configuration":
        if self.max_backoff_ms < self.retry_backoff_base_ms:
            raise ConfigurationError(
                "max_backoff_ms", "must be greater than or equal to retry_backoff_base_ms"
            )
        if self.default_sender_id is not None and not self.default_sender_id.strip():
            raise ConfigurationError("default_sender_id", "cannot be blank")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError("base_url", "must be an http or https URL")
        return self

    def model_copy(
        self, *, update: dict[str, Any] | None = None, deep: bool = False
    ) -> "Configuration":
        # pydantic skips validation on update; rebuild so bad values still fail here
        if not update:
            return super().model_copy(deep=deep)
        return type(self)(**{**self.model_dump(), **update})

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.open_timeout, self.read_timeout)

    @classmethod
    def from_env(cls, prefix: str = "CELLCAST_", **overrides: Any) -> "Configuration":
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls(**values)
