"""
Help text shown next to a question: a per-field hint plus where the
suggested answer came from and how sure we are about it.
"""

from __future__ import annotations

from smart_intake.schemas.defaults import DefaultSource, FieldDefault
from smart_intake.schemas.fields import RequirementField

FIELD_HINTS: dict[RequirementField, str] = {
    RequirementField.ESTIMATED_VALUE: "Enter the total estimated value including all options",
    RequirementField.REQUIRED_DATE: "When do you need the goods/services delivered?",
    RequirementField.VENDOR_NAME: "Preferred vendor or 'Open Competition' if none",
    RequirementField.FUNDING_SOURCE: "Budget line or appropriation code",
}

SOURCE_LABELS: dict[DefaultSource, str] = {
    DefaultSource.DOCUMENT_CONTEXT: "Extracted from your document",
    DefaultSource.USER_PATTERN: "Based on your previous selections",
    DefaultSource.HISTORICAL: "Based on historical data",
    DefaultSource.SYSTEM_DEFAULT: "Recommended value",
    DefaultSource.CONTEXTUAL: "Based on contextual analysis",
}


def generate_help_text(field: RequirementField, suggestion: FieldDefault | None) -> str | None:
    parts: list[str] = []

    hint = FIELD_HINTS.get(field)
    if hint:
        parts.append(hint)

    if suggestion is not None:
        percent = round(suggestion.confidence * 100)
        parts.append(f"{SOURCE_LABELS[suggestion.source]} ({percent}% confidence)")

    return ". ".join(parts) if parts else None
