"""Offline transport that answers like the Cellcast API without sending anything.

Special numbers trigger specific behaviours:

    +15550000000  delivered successfully
    +15550000001  rejected for that recipient only (batch still succeeds)
    +15550000002  HTTP 429 OVER_LIMIT
    +15550000003  HTTP 400 FIELD_INVALID
    +15550000004  HTTP 422 insufficient credit
"""

import json
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from urllib.parse import parse_qs, urlparse

from cellcastapi.transport import TransportResponse

logger = logging.getLogger("cellcastapi.sandbox")

SANDBOX_TEST_NUMBERS = {
    "+15550000000": "success",
    "+15550000001": "failed",
    "+15550000002": "rate_limited",
    "+15550000003": "invalid_number",
    "+15550000004": "insufficient_credits",
}

SANDBOX_BALANCE = 1000


def generate_message_id() -> str:
    return f"sandbox_{int(time.time())}_{random.randint(1000, 9999)}"


def envelope(data: Any = None, msg: str = "", code: int = 200, status: str = "SUCCESS") -> dict:
    body: dict[str, Any] = {"meta": {"code": code, "status": status}, "msg": msg}
    if data is not None:
        body["data"] = data
    return body


class SandboxTransport:
    def __init__(self) -> None:
        self._routes: dict[str, Callable[..., TransportResponse]] = {
            "send-sms": self._send,
            "send-sms-nz": self._send,
            "send-sms-template": self._send,
            "get-sms": self._get_message,
            "get-responses": self._get_responses,
            "inbound-read": self._mark_read,
            "inbound-read-bulk": self._mark_read,
            "account": self._account,
            "get-template": self._templates,
            "get-optout": self._optout,
            "register-alpha-id": self._register_alpha_id,
        }

    def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: dict[str, Any] | None,
        timeout: tuple[float, float],
    ) -> TransportResponse:
        parsed = urlparse(url)
        endpoint = parsed.path.rstrip("/").rsplit("/", 1)[-1]
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        logger.info(f"Sandbox request: {method} {endpoint}")
        if body:
            logger.debug(f"Sandbox request body: {body}")
        handler = self._routes.get(endpoint)
        if handler is None:
            return self._respond(envelope(msg="Unknown endpoint", code=404, status="NOT_FOUND"), 404)
        return handler(body or {}, query)

    @staticmethod
    def _respond(
        payload: Any, status_code: int = 200, headers: dict[str, str] | None = None
    ) -> TransportResponse:
        return TransportResponse(status_code, json.dumps(payload), headers or {})

    def _send(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        recipients = body.get("numbers") or []
        numbers = [r.get("number") if isinstance(r, dict) else r for r in recipients]
        behaviours = [SANDBOX_TEST_NUMBERS.get(str(n).strip(), "success") for n in numbers]

        if "rate_limited" in behaviours:
            return self._respond(
                envelope(msg="Rate limit exceeded in sandbox mode", code=429, status="OVER_LIMIT"),
                429,
                {"Retry-After": "1"},
            )
        if "invalid_number" in behaviours:
            bad = numbers[behaviours.index("invalid_number")]
            return self._respond(
                envelope(msg=f"Invalid phone number format: {bad}", code=400, status="FIELD_INVALID"),
                400,
            )
        if "insufficient_credits" in behaviours:
            return self._respond(
                envelope(
                    msg="Your balance is too low for this request, please recharge.",
                    code=422,
                    status="INSUFFICIENT_CREDIT",
                ),
                422,
            )

        messages = []
        failed = []
        for number, behaviour in zip(numbers, behaviours):
            if behaviour == "failed":
                failed.append(number)
                continue
            messages.append(
                {
                    "message_id": generate_message_id(),
                    "from": body.get("from"),
                    "to": number,
                    "body": body.get("sms_text"),
                }
            )
        data = {
            "messages": messages,
            "total_numbers": len(numbers),
            "success_number": len(messages),
            "credits_used": len(messages),
            "invalid_numbers": failed,
        }
        return self._respond(envelope(data, "Queued"))

    def _get_message(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        data = [
            {
                "message_id": query.get("message_id"),
                "to": "+15550000000",
                "body": "Sandbox message",
                "status": "Delivered",
                "sent_time": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            }
        ]
        return self._respond(envelope(data, "Record founded"))

    def _get_responses(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        page = int(query.get("page", 1))
        responses = [
            {
                "from": "+15550000000",
                "body": f"Sandbox reply {page}",
                "received_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                "message_id": f"sandbox_inbound_{page}",
                "custom_string": "",
                "original_body": "Sandbox message",
                "original_message_id": "sandbox_original",
            }
        ]
        data = {"page": {"count": 1, "number": page}, "total": 1, "responses": responses}
        return self._respond(envelope(data, f"You have {len(responses)} response(s)"))

    def _mark_read(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        return self._respond(envelope(msg="Inbound messages have been marked as read."))

    def _account(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        data = {"account_name": "Sandbox Account", "sms_balance": SANDBOX_BALANCE, "mms_balance": 100}
        return self._respond(envelope(data, "Here's your account"))

    def _templates(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        data = [{"id": "sandbox_template_1", "name": "Welcome", "body": "Hi {fname}!"}]
        return self._respond(envelope(data, "Templates"))

    def _optout(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        return self._respond(envelope([], "Opt-out list"))

    def _register_alpha_id(self, body: dict[str, Any], query: dict[str, str]) -> TransportResponse:
        data = {"id": generate_message_id(), "alpha_id": body.get("alpha_id"), "status": "pending"}
        return self._respond(envelope(data, "Alpha ID registration submitted"))
