from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Annotated

MAX_SMS_LENGTH = 1600

NonBlank = Annotated[str, Field(strict=True, min_length=1)]


def _strip_all(values: list[str], label: str) -> list[str]:
    for index, value in enumerate(values):
        if not value.strip():
            raise ValueError(f"{label} at index {index} cannot be blank")
    return [value.strip() for value in values]


class SendSMSPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sms_text: Annotated[str, Field(strict=True, min_length=1, max_length=MAX_SMS_LENGTH)]
    numbers: Annotated[list[NonBlank], Field(min_length=1)]
    from_: str | None = Field(default=None, alias="from")
    schedule_time: str | None = None
    delay: Annotated[int, Field(ge=0, le=1440)] | None = None
    source: str | None = None
    custom_string: str | None = None

    @field_validator("sms_text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message cannot be blank")
        return value

    @field_validator("numbers")
    @classmethod
    def numbers_not_blank(cls, value: list[str]) -> list[str]:
        return _strip_all(value, "number")


class TemplateRecipient(BaseModel):
    number: NonBlank
    fname: str | None = None
    lname: str | None = None
    custom_value_1: str | None = None
    custom_value_2: str | None = None
    custom_value_3: str | None = None


class SendTemplatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_id: NonBlank
    numbers: Annotated[list[TemplateRecipient], Field(min_length=1)]
    from_: str | None = Field(default=None, alias="from")
    schedule_time: str | None = None
    delay: Annotated[int, Field(ge=0, le=1440)] | None = None


class MessageIdPayload(BaseModel):
    message_id: NonBlank


class BulkMarkReadPayload(BaseModel):
    message_id: Annotated[list[NonBlank], Field(min_length=1)]

    @field_validator("message_id")
    @classmethod
    def ids_not_blank(cls, value: list[str]) -> list[str]:
        return _strip_all(value, "message id")


class AlphaIdPayload(BaseModel):
    alpha_id: Annotated[str, Field(strict=True, pattern=r"^[A-Za-z0-9]{1,11}$")]
    purpose: NonBlank


class PersonalizedMessage(BaseModel):
    to: NonBlank
    message: Annotated[str, Field(strict=True, min_length=1, max_length=MAX_SMS_LENGTH)]
    sender_id: str | None = None

    @field_validator("to")
    @classmethod
    def strip_number(cls, value: str) -> str:
        return _strip_all([value], "number")[0]

    @field_validator("message")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message cannot be blank")
        return value


class PersonalizedPayload(BaseModel):
    messages: Annotated[list[PersonalizedMessage], Field(min_length=1)]
