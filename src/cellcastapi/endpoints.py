"""Operation name -> HTTP method, path and body builder for the Cellcast v3 API."""

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence
from urllib.parse import urlencode

from cellcastapi.models.envelope import is_success

Summary = tuple[int, list[Any]]


def summarize_default(envelope: Any, items: Sequence[Any]) -> Summary:
    return (len(items) if is_success(envelope) else 0, [])


def summarize_send(envelope: Any, items: Sequence[Any]) -> Summary:
    """Success count and per-message results of one send batch."""
    if isinstance(envelope, list):
        succeeded = [e for e in envelope if is_success(e)]
        return len(succeeded), [e.get("data") for e in envelope if isinstance(e, dict)]
    data = envelope.get("data") if isinstance(envelope, dict) else None
    if not isinstance(data, dict):
        return summarize_default(envelope, items)
    messages = data.get("messages", data.get("queueResponse", []))
    success = data.get("success_number", data.get("totalValidContact"))
    if success is None:
        success = len(messages) if is_success(envelope) else 0
    return int(success), list(messages)


@dataclass(frozen=True)
class EndpointDescriptor:
    name: str
    method: str
    path: str
    item_field: str | None = None
    query_fields: tuple[str, ...] = ()
    summarize: Callable[[Any, Sequence[Any]], Summary] = field(default=summarize_default)

    @property
    def chunked(self) -> bool:
        return self.item_field is not None

    def build_path(self, fields: dict[str, Any]) -> str:
        query = {k: fields[k] for k in self.query_fields if fields.get(k) is not None}
        return f"{self.path}?{urlencode(query)}" if query else self.path

    def build_body(
        self, fields: dict[str, Any], items: Sequence[Any] | None = None
    ) -> dict[str, Any] | None:
        if self.method == "GET":
            return None
        body = {k: v for k, v in fields.items() if k not in self.query_fields}
        if self.item_field is not None:
            body[self.item_field] = list(items or [])
        return body


ENDPOINTS: dict[str, EndpointDescriptor] = {
    d.name: d
    for d in (
        EndpointDescriptor("send_sms", "POST", "send-sms", "numbers", summarize=summarize_send),
        EndpointDescriptor("send_sms_nz", "POST", "send-sms-nz", "numbers", summarize=summarize_send),
        EndpointDescriptor(
            "send_sms_template", "POST", "send-sms-template", "numbers", summarize=summarize_send
        ),
        EndpointDescriptor("get_message", "GET", "get-sms", query_fields=("message_id",)),
        EndpointDescriptor("get_responses", "GET", "get-responses", query_fields=("page", "type")),
        EndpointDescriptor("mark_inbound_read", "POST", "inbound-read"),
        EndpointDescriptor("mark_inbound_read_bulk", "POST", "inbound-read-bulk", "message_id"),
        EndpointDescriptor("account", "GET", "account"),
        EndpointDescriptor("get_templates", "GET", "get-template"),
        EndpointDescriptor("get_optout", "GET", "get-optout"),
        EndpointDescriptor("register_alpha_id", "POST", "register-alpha-id"),
    )
}


def get_endpoint(name: str) -> EndpointDescriptor:
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise ValueError(f"Unknown operation: {name}") from None
