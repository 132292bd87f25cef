from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

RECEIVED_AT_FORMATS = ("%Y/%m/%d %H:%M:%S", "%Y-%m-%d %H:%M:%S")


class InboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message_id: str | None = Field(
        default=None, validation_alias=AliasChoices("message_id", "messageId", "id")
    )
    from_: str | None = Field(default=None, alias="from")
    body: str | None = None
    received_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("received_at", "received_date", "date")
    )
    custom_string: str | None = None
    original_body: str | None = None
    original_message_id: str | None = None
    subaccount_id: str | None = None
    read: bool = Field(default=False, validation_alias=AliasChoices("read", "is_read"))

    @field_validator("message_id", "original_message_id", "subaccount_id", mode="before")
    @classmethod
    def ids_as_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("received_at", mode="before")
    @classmethod
    def parse_received_at(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for fmt in RECEIVED_AT_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    @field_validator("read", mode="before")
    @classmethod
    def parse_read(cls, value: Any) -> bool:
        return value in ("1", 1, True, "true")

    @property
    def unread(self) -> bool:
        return not self.read


class PageInfo(BaseModel):
    count: int = 1
    number: int = 1


class InboundPage(BaseModel):
    """One page of ``get-responses`` data."""

    model_config = ConfigDict(extra="allow")

    responses: list[InboundMessage] = Field(
        default_factory=list, validation_alias=AliasChoices("responses", "data", "messages")
    )
    page: PageInfo = Field(default_factory=PageInfo)
    total: int | None = None

    @field_validator("responses", mode="before")
    @classmethod
    def responses_as_list(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return [value]
        if not isinstance(value, list):
            return []
        return value

    @field_validator("page", mode="before")
    @classmethod
    def page_from_number(cls, value: Any) -> Any:
        if isinstance(value, int):
            return {"count": value, "number": value}
        return value

    @property
    def has_more_pages(self) -> bool:
        return self.page.number < self.page.count
