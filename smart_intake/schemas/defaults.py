"""
Data models for field defaults, their merge context, and the
classification results built on top of them.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from smart_intake.config import get_settings
from smart_intake.schemas.fields import RequirementField
from smart_intake.schemas.values import ResponseValue


class DefaultSource(str, Enum):
    DOCUMENT_CONTEXT = "document_context"
    USER_PATTERN = "user_pattern"
    HISTORICAL = "historical"
    SYSTEM_DEFAULT = "system_default"
    CONTEXTUAL = "contextual"


class FieldDefault(BaseModel):
    """A single proposed value for a field, with how sure we are of it."""
    model_config = ConfigDict(frozen=True)

    value: ResponseValue
    confidence: float = Field(ge=0.0, le=1.0)
    source: DefaultSource


def _default_auto_fill_threshold() -> float:
    return get_settings().auto_fill_threshold


class SmartDefaultContext(BaseModel):
    """
    Everything a provider may look at when proposing a default.

    Passed by value to every provider call and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    session_id: UUID = Field(default_factory=uuid4)
    user_id: str = ""
    organization_unit: str = ""
    acquisition_type: Optional[str] = None
    document_type: Optional[str] = None
    extracted_data: dict[str, str] = Field(default_factory=dict)
    organizational_rules: tuple[str, ...] = ()
    fiscal_year: str = ""
    fiscal_quarter: str = ""
    is_end_of_fiscal_year: bool = False
    days_until_fy_end: int = 0
    auto_fill_threshold: float = Field(default_factory=_default_auto_fill_threshold, ge=0.0, le=1.0)
    response_time: Optional[float] = None  # Seconds the user took on the previous question


class UserInteraction(BaseModel):
    """Outcome of one question, reported to the learning provider."""
    model_config = ConfigDict(frozen=True)

    session_id: UUID
    field: RequirementField
    suggested_value: Optional[ResponseValue] = None
    accepted_suggestion: bool = False
    final_value: ResponseValue
    time_to_respond: float = 0.0
    document_context: bool = False


class AutoFillSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_fields: int = 0
    auto_filled_count: int = 0
    suggested_count: int = 0
    must_ask_count: int = 0


class AutoFillResult(BaseModel):
    """One classification pass: every input field lands in exactly one bucket."""
    model_config = ConfigDict(frozen=True)

    auto_filled_fields: dict[RequirementField, ResponseValue] = Field(default_factory=dict)
    suggested_fields: dict[RequirementField, FieldDefault] = Field(default_factory=dict)
    must_ask_fields: list[RequirementField] = Field(default_factory=list)
    confidences: dict[RequirementField, float] = Field(default_factory=dict)
    summary: AutoFillSummary = Field(default_factory=AutoFillSummary)
