"""
Tagged response values exchanged between providers, the learning
channel, and the conversation.

Every value carries a ``kind`` discriminator; two values are equal only
when both the kind and the payload match.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from smart_intake.schemas.fields import FIELD_VALUE_KINDS, RequirementField

DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextValue(_Value):
    kind: Literal["text"] = "text"
    value: str


class SelectionValue(_Value):
    kind: Literal["selection"] = "selection"
    value: str


class NumericValue(_Value):
    kind: Literal["numeric"] = "numeric"
    value: Decimal


class DateValue(_Value):
    kind: Literal["date"] = "date"
    value: date


class BooleanValue(_Value):
    kind: Literal["boolean"] = "boolean"
    value: bool


class DocumentValue(_Value):
    kind: Literal["document"] = "document"
    value: UUID


class SkipValue(_Value):
    kind: Literal["skip"] = "skip"


ResponseValue = Annotated[
    Union[
        TextValue,
        SelectionValue,
        NumericValue,
        DateValue,
        BooleanValue,
        DocumentValue,
        SkipValue,
    ],
    Field(discriminator="kind"),
]

response_value_adapter: TypeAdapter[ResponseValue] = TypeAdapter(ResponseValue)


def parse_decimal(raw: str) -> Decimal | None:
    """Parse money-ish text such as ``"$1,250.00"``."""
    cleaned = raw.replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def parse_date(raw: str) -> date | None:
    cleaned = raw.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def value_from_text(field: RequirementField, raw: str) -> ResponseValue:
    """
    Coerce an extracted string into the field's natural value kind.

    Falls back to a text value when the string does not parse, so no
    extracted evidence is lost.
    """
    kind = FIELD_VALUE_KINDS.get(field, "text")
    if kind == "numeric":
        number = parse_decimal(raw)
        if number is not None:
            return NumericValue(value=number)
    elif kind == "date":
        parsed = parse_date(raw)
        if parsed is not None:
            return DateValue(value=parsed)
    elif kind == "document":
        try:
            return DocumentValue(value=UUID(raw.strip()))
        except ValueError:
            pass
    return TextValue(value=raw.strip())


def value_as_text(value: ResponseValue) -> str:
    """Render any value as the plain string stored in text slots."""
    if isinstance(value, SkipValue):
        return ""
    if isinstance(value, DateValue):
        return value.value.isoformat()
    if isinstance(value, BooleanValue):
        return "yes" if value.value else "no"
    return str(value.value)
