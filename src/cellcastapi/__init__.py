__version__ = "0.1.0"

from cellcastapi.cellcast import Cellcast  # noqa: E402
from cellcastapi.chunker import BulkResult, CallState  # noqa: E402
from cellcastapi.config import Configuration, ResponseFormat  # noqa: E402
from cellcastapi.errors import (  # noqa: E402
    ApiError,
    ApplicationError,
    CellcastError,
    ConfigurationError,
    DeliveryTimeout,
    RateLimitError,
    RequestCancelled,
    RequestValidationError,
    ResponseError,
    ServerError,
    TransportError,
)
from cellcastapi.models.envelope import (  # noqa: E402
    BothResult,
    EnhancedResponse,
    EnhancedResult,
    RawResult,
)

__all__ = [
    "__version__",
    "Cellcast",
    "Configuration",
    "ResponseFormat",
    "BulkResult",
    "CallState",
    "RawResult",
    "EnhancedResult",
    "BothResult",
    "EnhancedResponse",
    "CellcastError",
    "ConfigurationError",
    "DeliveryTimeout",
    "RequestValidationError",
    "TransportError",
    "ResponseError",
    "RequestCancelled",
    "ApiError",
    "RateLimitError",
    "ServerError",
    "ApplicationError",
]
