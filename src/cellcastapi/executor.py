import json
import logging
import threading
from typing import Any, Callable, Mapping, Sequence

from cellcastapi.cellcast_api import CellcastAPI
from cellcastapi.chunker import Batch, BatchOutcome, BulkChunker, BulkResult, CallState
from cellcastapi.config import Configuration
from cellcastapi.endpoints import EndpointDescriptor, get_endpoint
from cellcastapi.errors import ApplicationError, RateLimitError, ResponseError, ServerError
from cellcastapi.models.envelope import (
    OVER_LIMIT_STATUS,
    NormalizedResult,
    is_envelope,
    is_success,
    meta_of,
)
from cellcastapi.normalizer import normalize
from cellcastapi.retry import RetryPolicy
from cellcastapi.transport import Transport, TransportResponse

logger = logging.getLogger("cellcastapi.executor")


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _retry_after(headers: Mapping[str, str]) -> float | None:
    for key, value in headers.items():
        if key.lower() == "retry-after" and str(value).strip().isdigit():
            return float(value)
    return None


def _decode(res: TransportResponse) -> Any:
    if not res.text or not res.text.strip():
        return None
    try:
        return json.loads(res.text)
    except json.JSONDecodeError:
        return None


def check_response(res: TransportResponse, url: str) -> Any:
    """Parse one HTTP response, raising the vendor error it carries.

    Returns the envelope (or the list of per-item envelopes of a bulk send)
    when the call succeeded.
    """
    body = _decode(res)
    meta = meta_of(body)
    code = _as_int(meta.get("code"))
    status = meta.get("status")
    message = body.get("msg") if isinstance(body, dict) and body.get("msg") else res.text[:200]
    details = {
        "code": code if code is not None else res.status_code,
        "status": status,
        "http_status": res.status_code,
        "envelope": body,
        "url": url,
    }

    if res.status_code == 429 or status == OVER_LIMIT_STATUS:
        raise RateLimitError(message, retry_after=_retry_after(res.headers), **details)
    if res.status_code >= 500 or (code is not None and code >= 500):
        raise ServerError(message, **details)
    if not res.ok:
        raise ApplicationError(message, **details)
    if isinstance(body, list):
        return body
    if not is_envelope(body):
        raise ResponseError("Response is not a Cellcast envelope", body=res.text, url=url)
    if not is_success(body):
        raise ApplicationError(message, **details)
    return body


class RequestExecutor:
    """Runs logical operations: build, dispatch with retries, normalize, merge."""

    def __init__(
        self,
        config: Configuration,
        transport: Transport,
        api_key: str,
        base_url: str | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._api = CellcastAPI(base_url or config.base_url)
        self._api.update_headers({"APPKEY": api_key})
        self._retry = RetryPolicy.from_config(config, sleep=sleep)
        self._chunker = BulkChunker(config.chunk_size, config.max_concurrent_batches)

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._api.headers)

    def execute(
        self,
        operation: str,
        fields: dict[str, Any] | None = None,
        items: Sequence[Any] | None = None,
        cancel: threading.Event | None = None,
    ) -> NormalizedResult | BulkResult:
        endpoint = get_endpoint(operation)
        fields = fields or {}
        logger.debug(f"{operation}: {CallState.BUILDING.value}")
        if endpoint.chunked and items is not None and len(items) > self.config.chunk_size:
            result = self._chunker.run(
                items, lambda batch: self._run_batch(endpoint, fields, batch, cancel), cancel
            )
            logger.debug(f"{operation}: {result.state.value}")
            return result
        envelope = self._call(endpoint, fields, items, cancel)
        logger.debug(f"{operation}: {CallState.SUCCEEDED.value}")
        return normalize(envelope, self.config)

    def execute_runs(
        self,
        operation: str,
        items: Sequence[Any],
        fields_for: Callable[[Any], dict[str, Any]],
        item_of: Callable[[Any], Any],
        cancel: threading.Event | None = None,
    ) -> BulkResult:
        """One call per contiguous run of items that share the same body fields.

        ``fields_for(item)`` gives the shared fields of a run and ``item_of(item)``
        the value placed in the endpoint's item list.
        """
        endpoint = get_endpoint(operation)
        logger.debug(f"{operation}: {CallState.BUILDING.value}")

        def run(batch: Batch) -> BatchOutcome:
            values = Batch(batch.index, batch.start, [item_of(i) for i in batch.items])
            return self._run_batch(endpoint, fields_for(batch.items[0]), values, cancel)

        def key(item: Any) -> tuple:
            return tuple(sorted(fields_for(item).items()))

        result = self._chunker.run(items, run, cancel, key=key)
        logger.debug(f"{operation}: {result.state.value}")
        return result

    def fetch(
        self,
        operation: str,
        fields: dict[str, Any] | None = None,
        cancel: threading.Event | None = None,
    ) -> Any:
        """The parsed envelope of a single physical call, before normalization."""
        return self._call(get_endpoint(operation), fields or {}, None, cancel)

    def _run_batch(
        self,
        endpoint: EndpointDescriptor,
        fields: dict[str, Any],
        batch: Batch,
        cancel: threading.Event | None,
    ) -> BatchOutcome:
        envelope = self._call(endpoint, fields, batch.items, cancel)
        success_count, item_results = endpoint.summarize(envelope, batch.items)
        return BatchOutcome(
            result=normalize(envelope, self.config),
            success_count=success_count,
            item_results=item_results,
        )

    def _call(
        self,
        endpoint: EndpointDescriptor,
        fields: dict[str, Any],
        items: Sequence[Any] | None,
        cancel: threading.Event | None,
    ) -> Any:
        url = self._api.url_for(endpoint.build_path(fields))
        body = endpoint.build_body(fields, items)
        logger.debug(f"{endpoint.name}: {CallState.DISPATCHING.value} {endpoint.method} {url}")
        return self._retry.call(lambda: self._dispatch(endpoint.method, url, body), cancel)

    def _dispatch(self, method: str, url: str, body: dict[str, Any] | None) -> Any:
        res = self._transport.send(method, url, self._api.headers, body, self.config.timeout)
        return check_response(res, url)
