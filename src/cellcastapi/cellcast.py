import logging
import threading
import time
from itertools import islice
from typing import Any, Callable, Iterator, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from cellcastapi.chunker import BulkResult
from cellcastapi.config import Configuration
from cellcastapi.errors import (
    ConfigurationError,
    DeliveryTimeout,
    RequestCancelled,
    RequestValidationError,
)
from cellcastapi.executor import RequestExecutor
from cellcastapi.models.envelope import NormalizedResult
from cellcastapi.models.inbound import InboundMessage, InboundPage
from cellcastapi.models.sms_model import (
    AlphaIdPayload,
    BulkMarkReadPayload,
    MessageIdPayload,
    PersonalizedMessage,
    PersonalizedPayload,
    SendSMSPayload,
    SendTemplatePayload,
    TemplateRecipient,
)
from cellcastapi.sandbox import SandboxTransport
from cellcastapi.transport import RequestsTransport, Transport

logger = logging.getLogger("cellcastapi")

M = TypeVar("M", bound=BaseModel)

Result = NormalizedResult | BulkResult

FINAL_STATUSES = ("delivered", "failed")
PENDING_STATUSES = ("pending", "queued")


class Cellcast:
    """Client for the Cellcast SMS API.

    Item-based operations (sends, bulk mark-read) that exceed
    ``config.chunk_size`` are split into batches and return a ``BulkResult``;
    everything else returns a result shaped by ``config.response_format``.
    """

    def __init__(
        self,
        api_key: str,
        config: Configuration | None = None,
        transport: Transport | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError("api_key", "cannot be empty")
        self.config = config or Configuration()
        if transport is None:
            transport = SandboxTransport() if self.config.sandbox_mode else RequestsTransport()
        self._transport = transport
        self._sleep = sleep or time.sleep
        self._executor = RequestExecutor(self.config, transport, api_key.strip(), sleep=sleep)

    @staticmethod
    def _validate(model: type[M], **data: Any) -> M:
        try:
            return model(**data)
        except ValidationError as e:
            logger.error(f"Validation error: {e.errors()}")
            errors = e.errors(include_url=False, include_input=False)
            raise RequestValidationError(
                f"Invalid {model.__name__}: {errors[0]['msg']}", errors
            ) from None

    def _sender(self, sender_id: str | None) -> str | None:
        return sender_id or self.config.default_sender_id

    def _send(
        self, operation: str, payload: BaseModel, cancel: threading.Event | None
    ) -> Result:
        fields = payload.model_dump(by_alias=True, exclude_none=True)
        items = fields.pop("numbers")
        return self._executor.execute(operation, fields, items, cancel)

    def send_sms(
        self,
        numbers: str | Sequence[str],
        message: str,
        sender_id: str | None = None,
        schedule_time: str | None = None,
        delay: int | None = None,
        custom_string: str | None = None,
        cancel: threading.Event | None = None,
    ) -> Result:
        if isinstance(numbers, str):
            numbers = [numbers]
        payload = self._validate(
            SendSMSPayload,
            sms_text=message,
            numbers=list(numbers),
            from_=self._sender(sender_id),
            schedule_time=schedule_time,
            delay=delay,
            custom_string=custom_string,
        )
        return self._send("send_sms", payload, cancel)

    def send_sms_nz(
        self,
        numbers: str | Sequence[str],
        message: str,
        sender_id: str | None = None,
        cancel: threading.Event | None = None,
    ) -> Result:
        if isinstance(numbers, str):
            numbers = [numbers]
        payload = self._validate(
            SendSMSPayload, sms_text=message, numbers=list(numbers), from_=self._sender(sender_id)
        )
        return self._send("send_sms_nz", payload, cancel)

    def send_sms_template(
        self,
        template_id: str,
        recipients: Sequence[dict[str, Any] | TemplateRecipient],
        sender_id: str | None = None,
        schedule_time: str | None = None,
        cancel: threading.Event | None = None,
    ) -> Result:
        payload = self._validate(
            SendTemplatePayload,
            template_id=template_id,
            numbers=list(recipients),
            from_=self._sender(sender_id),
            schedule_time=schedule_time,
        )
        return self._send("send_sms_template", payload, cancel)

    def send_personalized(
        self,
        messages: Sequence[dict[str, Any] | PersonalizedMessage],
        sender_id: str | None = None,
        cancel: threading.Event | None = None,
    ) -> BulkResult:
        """Send a different text to each recipient.

        Neighbouring messages with the same text and sender share one
        ``send-sms`` call of at most ``chunk_size`` numbers.
        """
        payload = self._validate(PersonalizedPayload, messages=list(messages))
        default_sender = self._sender(sender_id)

        def fields_for(message: PersonalizedMessage) -> dict[str, Any]:
            fields = {"sms_text": message.message, "from": message.sender_id or default_sender}
            return {k: v for k, v in fields.items() if v is not None}

        return self._executor.execute_runs(
            "send_sms", payload.messages, fields_for, lambda m: m.to, cancel
        )

    def get_message(self, message_id: str) -> Result:
        payload = self._validate(MessageIdPayload, message_id=message_id)
        return self._executor.execute("get_message", payload.model_dump())

    def message_status(self, message_id: str) -> str | None:
        payload = self._validate(MessageIdPayload, message_id=message_id)
        data = self._executor.fetch("get_message", payload.model_dump()).get("data")
        record = data[0] if isinstance(data, list) and data else data
        status = record.get("status") if isinstance(record, dict) else None
        return status.lower() if isinstance(status, str) else None

    def track_until_delivered(
        self,
        message_id: str,
        timeout: float = 300,
        check_interval: float = 30,
        cancel: threading.Event | None = None,
    ) -> str:
        """Poll ``get-sms`` until the message is delivered or failed; returns that status."""
        started = time.monotonic()
        while True:
            status = self.message_status(message_id)
            if status in FINAL_STATUSES:
                return status
            if time.monotonic() - started >= timeout:
                raise DeliveryTimeout(
                    f"Message {message_id} still {status or 'unknown'} after {timeout} seconds"
                )
            logger.info(f"Message {message_id} is {status}, checking again in {check_interval}s")
            if cancel is None:
                self._sleep(check_interval)
            elif cancel.wait(check_interval):
                raise RequestCancelled(f"Tracking of message {message_id} cancelled")

    def delivery_stats(self, message_ids: Sequence[str]) -> dict[str, Any]:
        statuses = [self.message_status(message_id) for message_id in message_ids]
        delivered = statuses.count("delivered")
        total = len(statuses)
        return {
            "total": total,
            "delivered": delivered,
            "failed": statuses.count("failed"),
            "pending": sum(1 for s in statuses if s in PENDING_STATUSES),
            "delivery_rate": round(delivered / total * 100, 2) if total else 0,
        }

    def get_responses(self, page: int = 1, message_type: str = "sms") -> Result:
        if page < 1:
            raise RequestValidationError("page must be 1 or greater")
        return self._executor.execute("get_responses", {"page": page, "type": message_type})

    def iter_pages(self, message_type: str = "sms") -> Iterator[InboundPage]:
        page_number = 1
        while True:
            envelope = self._executor.fetch(
                "get_responses", {"page": page_number, "type": message_type}
            )
            data = envelope.get("data") or {}
            if isinstance(data, list):
                data = {"responses": data}
            page = InboundPage.model_validate(data)
            yield page
            if not page.has_more_pages:
                return
            page_number += 1

    def iter_responses(
        self, message_type: str = "sms", limit: int | None = None
    ) -> Iterator[InboundMessage]:
        """Yield inbound messages from every ``get-responses`` page."""
        count = 0
        for page in self.iter_pages(message_type):
            for message in page.responses:
                yield message
                count += 1
                if limit is not None and count >= limit:
                    return

    def unread_responses(
        self, message_type: str = "sms", limit: int | None = None
    ) -> list[InboundMessage]:
        return [m for m in self.iter_responses(message_type, limit) if m.unread]

    def message_stats(self, pages: int = 1, message_type: str = "sms") -> dict[str, Any]:
        total = read = 0
        for page in islice(self.iter_pages(message_type), pages):
            total += len(page.responses)
            read += sum(1 for m in page.responses if m.read)
        return {
            "total": total,
            "read": read,
            "unread": total - read,
            "read_rate": round(read / total * 100, 2) if total else 0,
        }

    def mark_inbound_read(self, message_id: str) -> Result:
        payload = self._validate(MessageIdPayload, message_id=message_id)
        return self._executor.execute("mark_inbound_read", payload.model_dump())

    def mark_inbound_read_bulk(
        self, message_ids: Sequence[str], cancel: threading.Event | None = None
    ) -> Result:
        payload = self._validate(BulkMarkReadPayload, message_id=list(message_ids))
        return self._executor.execute("mark_inbound_read_bulk", {}, payload.message_id, cancel)

    def mark_all_read(self, message_type: str = "sms") -> Result | None:
        ids = [m.message_id for m in self.unread_responses(message_type) if m.message_id]
        if not ids:
            logger.info("No unread inbound messages to mark as read")
            return None
        return self.mark_inbound_read_bulk(ids)

    def balance(self) -> Result:
        return self._executor.execute("account")

    def get_templates(self) -> Result:
        return self._executor.execute("get_templates")

    def get_optout_list(self) -> Result:
        return self._executor.execute("get_optout")

    def register_alpha_id(self, alpha_id: str, purpose: str) -> Result:
        payload = self._validate(AlphaIdPayload, alpha_id=alpha_id, purpose=purpose)
        return self._executor.execute("register_alpha_id", payload.model_dump())

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "Cellcast":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
