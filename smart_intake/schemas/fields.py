"""
Requirement fields collected during an intake conversation.
"""

from enum import Enum


class RequirementField(str, Enum):
    PROJECT_TITLE = "project_title"
    DESCRIPTION = "description"
    ESTIMATED_VALUE = "estimated_value"
    REQUIRED_DATE = "required_date"
    VENDOR_NAME = "vendor_name"
    VENDOR_UEI = "vendor_uei"
    VENDOR_CAGE = "vendor_cage"
    TECHNICAL_SPECS = "technical_specs"
    PERFORMANCE_LOCATION = "performance_location"
    CONTRACT_TYPE = "contract_type"
    SET_ASIDE_TYPE = "set_aside_type"
    SPECIAL_CONDITIONS = "special_conditions"
    JUSTIFICATION = "justification"
    FUNDING_SOURCE = "funding_source"
    REQUISITION_NUMBER = "requisition_number"
    COST_CENTER = "cost_center"
    ACCOUNTING_CODE = "accounting_code"
    QUALITY_REQUIREMENTS = "quality_requirements"
    DELIVERY_INSTRUCTIONS = "delivery_instructions"
    PACKAGING_REQUIREMENTS = "packaging_requirements"
    INSPECTION_REQUIREMENTS = "inspection_requirements"
    PAYMENT_TERMS = "payment_terms"
    WARRANTY_REQUIREMENTS = "warranty_requirements"
    ATTACHMENTS = "attachments"
    POINT_OF_CONTACT = "point_of_contact"

    @property
    def camel_name(self) -> str:
        """``vendor_uei`` -> ``vendorUEI`` style key used by document extractors."""
        head, *rest = self.value.split("_")
        return head + "".join(_CAMEL_OVERRIDES.get(part, part.capitalize()) for part in rest)


_CAMEL_OVERRIDES = {"uei": "UEI", "cage": "CAGE"}


# Fields that must never be filled silently unless explicitly allowed
CRITICAL_FIELDS: frozenset[RequirementField] = frozenset({
    RequirementField.PROJECT_TITLE,
    RequirementField.ESTIMATED_VALUE,
    RequirementField.REQUIRED_DATE,
    RequirementField.VENDOR_NAME,
})

HIGH_PRIORITY_FIELDS: frozenset[RequirementField] = frozenset({
    RequirementField.FUNDING_SOURCE,
    RequirementField.CONTRACT_TYPE,
    RequirementField.PERFORMANCE_LOCATION,
})


# Keys a document extractor may use for a field, checked in order.
FIELD_KEY_VARIATIONS: dict[RequirementField, tuple[str, ...]] = {
    RequirementField.VENDOR_NAME: ("vendorName", "vendor_name", "vendor", "supplier", "company"),
    RequirementField.REQUIRED_DATE: (
        "requiredDate", "required_date", "deliveryDate", "delivery_date", "needBy", "need_by",
    ),
    RequirementField.ESTIMATED_VALUE: (
        "estimatedValue", "estimated_value", "totalValue", "total_value", "amount",
    ),
    RequirementField.PERFORMANCE_LOCATION: (
        "performanceLocation", "location", "deliveryLocation", "delivery_location",
    ),
    RequirementField.FUNDING_SOURCE: ("fundingSource", "funding_source", "fund", "appropriation"),
}


# Natural ResponseValue kind per field; anything missing is "text".
FIELD_VALUE_KINDS: dict[RequirementField, str] = {
    RequirementField.ESTIMATED_VALUE: "numeric",
    RequirementField.REQUIRED_DATE: "date",
    RequirementField.ATTACHMENTS: "document",
}


def field_key_variations(field: RequirementField) -> tuple[str, ...]:
    """Extracted-data keys that may carry a value for ``field``."""
    explicit = FIELD_KEY_VARIATIONS.get(field)
    if explicit:
        return explicit
    if field.camel_name == field.value:
        return (field.value,)
    return (field.camel_name, field.value)


def field_for_key(key: str) -> RequirementField | None:
    """Reverse lookup of :func:`field_key_variations`."""
    for field in RequirementField:
        if key in field_key_variations(field):
            return field
    return None
