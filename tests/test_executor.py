import threading

import pytest

from cellcastapi.chunker import BulkResult, CallState
from cellcastapi.errors import (
    ApplicationError,
    RateLimitError,
    RequestCancelled,
    ResponseError,
    ServerError,
    TransportError,
)
from cellcastapi.models.envelope import BothResult, EnhancedResult, RawResult
from tests.conftest import FakeTransport, ok, reply, sent_ok

OVER_LIMIT = {"meta": {"code": 429, "status": "OVER_LIMIT"}, "msg": "Too many requests"}


def numbers(count):
    return [f"+614{n:08d}" for n in range(count)]


def test_small_send_is_a_single_call(make_executor):
    transport = FakeTransport(lambda m, u, body: sent_ok(body))
    executor = make_executor(transport)
    result = executor.execute("send_sms", {"sms_text": "hi"}, numbers(3))
    assert isinstance(result, EnhancedResult)
    assert result.success
    assert len(transport.calls) == 1
    call = transport.calls[0]
    assert call.method == "POST"
    assert call.url == "https://cellcast.com.au/api/v3/send-sms"
    assert call.body == {"sms_text": "hi", "numbers": numbers(3)}
    assert call.headers["APPKEY"] == "test-key"
    assert call.headers["Content-Type"] == "application/json"
    assert call.timeout == (30, 60)


def test_2500_numbers_are_sent_in_three_batches(make_executor):
    transport = FakeTransport(lambda m, u, body: sent_ok(body))
    executor = make_executor(transport, chunk_size=1000)
    recipients = numbers(2500)
    result = executor.execute("send_sms", {"sms_text": "hi"}, recipients)
    assert isinstance(result, BulkResult)
    assert [len(c.body["numbers"]) for c in transport.calls] == [1000, 1000, 500]
    assert result.state is CallState.SUCCEEDED
    assert result.total_items == 2500
    assert result.to_dict()["total_numbers"] == 2500
    assert result.success_count == 2500
    assert [m["to"] for m in result.item_results] == recipients


def test_over_limit_is_retried_with_growing_backoff(make_executor, sleeper):
    transport = FakeTransport(lambda m, u, body: reply(OVER_LIMIT))
    executor = make_executor(transport, max_retries=2, auto_retry_failed=True)
    with pytest.raises(RateLimitError) as exc_info:
        executor.execute("send_sms", {"sms_text": "hi"}, numbers(1))
    assert len(transport.calls) == 3
    assert sleeper.delays == [0.1, 0.2]
    assert exc_info.value.status == "OVER_LIMIT"
    assert exc_info.value.code == 429
    assert exc_info.value.message == "Too many requests"


def test_http_429_uses_retry_after(make_executor, sleeper):
    responses = [reply(OVER_LIMIT, 429, {"Retry-After": "2"}), sent_ok({"numbers": ["1"]})]
    transport = FakeTransport(responses=responses)
    executor = make_executor(transport, max_retries=1)
    result = executor.execute("send_sms", {"sms_text": "hi"}, ["1"])
    assert result.success
    assert sleeper.delays == [2]


def test_field_invalid_is_not_retried(make_executor):
    envelope = {"meta": {"code": 400, "status": "FIELD_INVALID"}, "msg": "Invalid numbers"}
    transport = FakeTransport(lambda m, u, body: reply(envelope, 400))
    executor = make_executor(transport, max_retries=3)
    with pytest.raises(ApplicationError) as exc_info:
        executor.execute("send_sms", {"sms_text": "hi"}, numbers(1))
    assert len(transport.calls) == 1
    error = exc_info.value
    assert (error.code, error.status, error.message) == (400, "FIELD_INVALID", "Invalid numbers")
    assert error.envelope == envelope


def test_auth_failure_in_a_2xx_envelope_is_an_application_error(make_executor):
    envelope = {"meta": {"code": 401, "status": "AUTH_FAILED"}, "msg": "APPKEY is invalid"}
    transport = FakeTransport(lambda m, u, body: reply(envelope))
    with pytest.raises(ApplicationError) as exc_info:
        make_executor(transport).execute("account")
    assert exc_info.value.status == "AUTH_FAILED"
    assert len(transport.calls) == 1


def test_server_errors_stop_when_auto_retry_is_off(make_executor):
    transport = FakeTransport(lambda m, u, body: reply("Bad gateway", 502))
    executor = make_executor(transport, auto_retry_failed=False, max_retries=5)
    with pytest.raises(ServerError) as exc_info:
        executor.execute("account")
    assert len(transport.calls) == 1
    assert exc_info.value.http_status == 502


def test_transport_failures_surface_the_last_error(make_executor):
    errors = [TransportError(f"connection reset {i}") for i in range(3)]
    transport = FakeTransport(responses=list(errors))
    with pytest.raises(TransportError) as exc_info:
        make_executor(transport, max_retries=2).execute("account")
    assert exc_info.value is errors[-1]


def test_non_envelope_body_is_a_response_error(make_executor):
    transport = FakeTransport(lambda m, u, body: reply("<html>maintenance</html>"))
    with pytest.raises(ResponseError):
        make_executor(transport).execute("account")
    assert len(transport.calls) == 1


def test_one_failed_batch_gives_partial_result(make_executor):
    def handler(method, url, body):
        if body["numbers"][0] == "+61400002000":
            return reply({"meta": {"code": 500, "status": "ERROR"}, "msg": "Internal error"}, 500)
        return sent_ok(body)

    transport = FakeTransport(handler)
    executor = make_executor(transport, chunk_size=1000, max_retries=1)
    recipients = numbers(2500)
    result = executor.execute("send_sms", {"sms_text": "hi"}, recipients)
    assert result.state is CallState.PARTIALLY_FAILED
    assert len(transport.calls) == 4
    assert result.success_count == 2000
    assert [m["to"] for m in result.item_results] == recipients[:2000]
    assert result.failed_batches == [2]
    assert isinstance(result.failures[0].error, ServerError)
    assert result.failures[0].error.message == "Internal error"


def test_concurrent_batches(make_executor):
    transport = FakeTransport(lambda m, u, body: sent_ok(body))
    executor = make_executor(transport, chunk_size=10, max_concurrent_batches=4)
    recipients = numbers(35)
    result = executor.execute("send_sms", {"sms_text": "hi"}, recipients)
    assert len(transport.calls) == 4
    assert [m["to"] for m in result.item_results] == recipients


def test_bulk_array_response(make_executor):
    body = [
        {"meta": {"code": 200, "status": "SUCCESS"}, "msg": "Queued", "data": {"to": "1"}},
        {"meta": {"code": 400, "status": "FIELD_INVALID"}, "msg": "Bad", "data": {"to": "2"}},
    ]
    transport = FakeTransport(lambda m, u, b: reply(body))
    executor = make_executor(transport, chunk_size=2, response_format="raw")
    result = executor.execute("send_sms", {"sms_text": "hi"}, ["1", "2", "3", "4"])
    assert result.state is CallState.PARTIALLY_FAILED
    assert not result.success
    assert result.rejected_batches == [0, 1]
    assert result.failures == []
    assert result.success_count == 2
    assert result.item_results == [{"to": "1"}, {"to": "2"}, {"to": "1"}, {"to": "2"}]
    assert all(isinstance(r, RawResult) and not r.success for r in result.responses)


def test_get_request_carries_query(make_executor):
    transport = FakeTransport(lambda m, u, b: reply(ok({"responses": []})))
    executor = make_executor(transport, response_format="both")
    result = executor.execute("get_responses", {"page": 2, "type": "sms"})
    assert isinstance(result, BothResult)
    call = transport.calls[0]
    assert call.method == "GET"
    assert call.url == "https://cellcast.com.au/api/v3/get-responses?page=2&type=sms"
    assert call.body is None


def test_cancelled_call(make_executor):
    cancel = threading.Event()
    cancel.set()
    transport = FakeTransport(lambda m, u, b: sent_ok(b))
    with pytest.raises(RequestCancelled):
        make_executor(transport).execute("send_sms", {"sms_text": "hi"}, ["1"], cancel=cancel)
    assert transport.calls == []


def test_unknown_operation(make_executor):
    with pytest.raises(ValueError):
        make_executor(FakeTransport()).execute("send_fax")

