import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import requests

from cellcastapi.errors import TransportError

logger = logging.getLogger("cellcastapi.transport")


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    text: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(Protocol):
    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: dict[str, Any] | None,
        timeout: tuple[float, float],
    ) -> TransportResponse: ...


class RequestsTransport:
    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: dict[str, Any] | None,
        timeout: tuple[float, float],
    ) -> TransportResponse:
        try:
            res = self._session.request(
                method, url, headers=dict(headers), json=body, timeout=timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error: {e}")
            raise TransportError(f"Error in network request to {url}: {e}", url=url) from e
        return TransportResponse(
            status_code=res.status_code, text=res.text, headers=res.headers
        )

    def close(self) -> None:
        self._session.close()
