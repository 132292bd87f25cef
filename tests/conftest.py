import json
import threading
from dataclasses import dataclass
from typing import Any, Callable

import pytest

from cellcastapi.config import Configuration
from cellcastapi.executor import RequestExecutor
from cellcastapi.transport import TransportResponse


def reply(payload: Any, status: int = 200, headers: dict[str, str] | None = None) -> TransportResponse:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return TransportResponse(status, text, headers or {})


def ok(data: Any = None, msg: str = "Queued") -> dict[str, Any]:
    body: dict[str, Any] = {"meta": {"code": 200, "status": "SUCCESS"}, "msg": msg}
    if data is not None:
        body["data"] = data
    return body


def sent_ok(body: dict[str, Any]) -> TransportResponse:
    numbers = body["numbers"]
    return reply(
        ok(
            {
                "messages": [{"message_id": f"id-{n}", "to": n} for n in numbers],
                "total_numbers": len(numbers),
                "success_number": len(numbers),
                "credits_used": len(numbers),
            }
        )
    )


@dataclass
class Call:
    method: str
    url: str
    headers: dict[str, str]
    body: dict[str, Any] | None
    timeout: tuple[float, float]


class FakeTransport:
    """Records every call; answers from ``handler`` or a queue of responses."""

    def __init__(
        self,
        handler: Callable[[str, str, Any], Any] | None = None,
        responses: list[Any] | None = None,
    ) -> None:
        self.calls: list[Call] = []
        self._handler = handler
        self._responses = list(responses or [])
        self._lock = threading.Lock()

    def send(self, method, url, headers, body, timeout):
        with self._lock:
            self.calls.append(Call(method, url, dict(headers), body, timeout))
            result = self._handler(method, url, body) if self._handler else self._responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_executor(sleeper):
    def factory(transport: FakeTransport, **settings: Any) -> RequestExecutor:
        settings.setdefault("retry_backoff_base_ms", 100)
        return RequestExecutor(
            Configuration(**settings), transport, api_key="test-key", sleep=sleeper
        )

    return factory
