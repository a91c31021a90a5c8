"""
Mapping between requirement fields and the slots of RequirementsData.

Each field has one semantic slot. Scalar slots are overwritten, list
slots are appended to, and vendor sub-fields merge into a single
vendor record.
"""

from __future__ import annotations

from smart_intake.schemas.conversation import RequirementsData
from smart_intake.schemas.documents import DocumentReference, ExtractedContext, VendorInfo
from smart_intake.schemas.fields import RequirementField as F
from smart_intake.schemas.values import (
    DateValue,
    DocumentValue,
    NumericValue,
    ResponseValue,
    SkipValue,
    TextValue,
    parse_date,
    parse_decimal,
    value_as_text,
)

# Scalar text slots
_TEXT_SLOTS: dict[F, str] = {
    F.PROJECT_TITLE: "project_title",
    F.DESCRIPTION: "description",
    F.PERFORMANCE_LOCATION: "place_of_performance",
    F.CONTRACT_TYPE: "acquisition_type",
    F.SET_ASIDE_TYPE: "set_aside_type",
    F.JUSTIFICATION: "business_justification",
}

_VENDOR_SLOTS: dict[F, str] = {
    F.VENDOR_NAME: "name",
    F.VENDOR_UEI: "uei",
    F.VENDOR_CAGE: "cage",
}

_LIST_SLOTS: dict[F, str] = {
    F.TECHNICAL_SPECS: "technical_requirements",
    F.SPECIAL_CONDITIONS: "special_conditions",
}


def prefill_from_context(context: ExtractedContext) -> RequirementsData:
    """Seed collected data with whatever the documents already told us."""
    data = RequirementsData()
    if context.vendor_info is not None:
        data.vendor_info = context.vendor_info.model_copy()
    if context.pricing is not None:
        data.estimated_value = context.pricing.total_price
    if context.dates is not None:
        data.required_date = context.dates.delivery_date
    data.technical_requirements = list(context.technical_details)
    data.special_conditions = list(context.special_terms)
    return data


def apply_value(
    data: RequirementsData,
    field: F,
    value: ResponseValue,
    replace: bool = False,
) -> None:
    """
    Merge ``value`` into the slot that holds ``field``. Skips change nothing.

    List slots are appended to unless ``replace`` is set, in which case the
    value becomes the only entry.
    """
    if isinstance(value, SkipValue):
        return

    if field in _TEXT_SLOTS:
        setattr(data, _TEXT_SLOTS[field], value_as_text(value))
    elif field in _VENDOR_SLOTS:
        if data.vendor_info is None:
            data.vendor_info = VendorInfo()
        setattr(data.vendor_info, _VENDOR_SLOTS[field], value_as_text(value))
    elif field in _LIST_SLOTS:
        text = value_as_text(value)
        if replace:
            setattr(data, _LIST_SLOTS[field], [text] if text else [])
        elif text:
            getattr(data, _LIST_SLOTS[field]).append(text)
    elif field == F.ESTIMATED_VALUE:
        if isinstance(value, NumericValue):
            data.estimated_value = value.value
        elif isinstance(value, TextValue):
            number = parse_decimal(value.value)
            if number is not None:
                data.estimated_value = number
    elif field == F.REQUIRED_DATE:
        if isinstance(value, DateValue):
            data.required_date = value.value
        elif isinstance(value, TextValue):
            parsed = parse_date(value.value)
            if parsed is not None:
                data.required_date = parsed
    elif field == F.ATTACHMENTS:
        if isinstance(value, DocumentValue):
            data.attachments.append(DocumentReference(id=value.value))
    else:
        data.additional_fields[field] = value


def has_value(data: RequirementsData, field: F) -> bool:
    """Whether the slot for ``field`` is already populated."""
    if field in _TEXT_SLOTS:
        return getattr(data, _TEXT_SLOTS[field]) is not None
    if field in _VENDOR_SLOTS:
        return data.vendor_info is not None and getattr(data.vendor_info, _VENDOR_SLOTS[field]) is not None
    if field in _LIST_SLOTS:
        return bool(getattr(data, _LIST_SLOTS[field]))
    if field == F.ESTIMATED_VALUE:
        return data.estimated_value is not None
    if field == F.REQUIRED_DATE:
        return data.required_date is not None
    if field == F.ATTACHMENTS:
        return bool(data.attachments)
    return field in data.additional_fields
