"""
Data models for intake conversations: questions, responses, and the
session the orchestrator advances.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from smart_intake.schemas.defaults import AutoFillResult, SmartDefaultContext
from smart_intake.schemas.documents import DocumentReference, ParsedDocument, VendorInfo
from smart_intake.schemas.fields import RequirementField
from smart_intake.schemas.values import ResponseValue


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationState(str, Enum):
    """High-level phases of an intake conversation."""
    STARTING = "starting"
    GATHERING_BASIC_INFO = "gathering_basic_info"
    EXTRACTING_FROM_DOCUMENTS = "extracting_from_documents"
    FILLING_GAPS = "filling_gaps"
    CONFIRMING_DETAILS = "confirming_details"
    COMPLETE = "complete"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QuestionPriority(IntEnum):
    CRITICAL = 0
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class ResponseType(str, Enum):
    TEXT = "text"
    SELECTION = "selection"
    NUMERIC = "numeric"
    DATE = "date"
    BOOLEAN = "boolean"
    DOCUMENT = "document"
    SKIP = "skip"


class AcquisitionType(str, Enum):
    SUPPLIES = "supplies"
    SERVICES = "services"
    CONSTRUCTION = "construction"
    RESEARCH_AND_DEVELOPMENT = "research_and_development"


class ValidationKind(str, Enum):
    REQUIRED = "required"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    REGEX = "regex"
    RANGE = "range"
    FUTURE_DATE = "future_date"
    CUSTOM = "custom"


class ValidationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ValidationKind
    error_message: str
    value: Optional[Any] = None  # length, pattern, (min, max) or custom rule id


class DynamicQuestion(BaseModel):
    """A question generated for one session. Never changes once generated."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    field: RequirementField
    prompt: str
    response_type: ResponseType
    options: Optional[list[str]] = None
    validation: Optional[ValidationRule] = None
    priority: QuestionPriority = QuestionPriority.MEDIUM
    contextual_placeholder: Optional[str] = None
    help_text: Optional[str] = None
    examples: list[str] = Field(default_factory=list)
    is_required: bool = True


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    response_type: ResponseType
    value: ResponseValue
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=_utcnow)


class AskedQuestion(BaseModel):
    """Append-only history entry."""
    model_config = ConfigDict(frozen=True)

    question: DynamicQuestion
    response: Optional[UserResponse] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    skipped: bool = False


class NextPrompt(BaseModel):
    question: DynamicQuestion
    suggested_answer: Optional[ResponseValue] = None
    confidence_in_suggestion: float = 0.0
    is_required: bool = True
    help_text: Optional[str] = None


class RequirementsData(BaseModel):
    """Values collected so far, one semantic slot per field."""
    project_title: Optional[str] = None
    description: Optional[str] = None
    estimated_value: Optional[Decimal] = None
    required_date: Optional[date] = None
    technical_requirements: list[str] = Field(default_factory=list)
    vendor_info: Optional[VendorInfo] = None
    special_conditions: list[str] = Field(default_factory=list)
    attachments: list[DocumentReference] = Field(default_factory=list)
    place_of_performance: Optional[str] = None
    business_justification: Optional[str] = None
    acquisition_type: Optional[str] = None
    competition_method: Optional[str] = None
    set_aside_type: Optional[str] = None
    evaluation_criteria: list[str] = Field(default_factory=list)
    # Fields without a dedicated slot (funding source, cost center, ...)
    additional_fields: dict[RequirementField, ResponseValue] = Field(default_factory=dict)


class UserProfile(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str = ""
    organization_unit: str = ""


class HistoricalAcquisition(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    acquired_on: date
    type: AcquisitionType
    data: RequirementsData
    vendor: Optional[VendorInfo] = None


class ConversationContext(BaseModel):
    """What the caller knows when a conversation begins."""
    acquisition_type: AcquisitionType
    uploaded_documents: list[ParsedDocument] = Field(default_factory=list)
    user_profile: Optional[UserProfile] = None
    historical_data: list[HistoricalAcquisition] = Field(default_factory=list)


class ConversationSession(BaseModel):
    """
    The caller-held state of one conversation.

    Mutated only by the orchestrator; never shared across sessions.
    """
    id: UUID = Field(default_factory=uuid4)
    start_time: datetime = Field(default_factory=_utcnow)
    state: ConversationState = ConversationState.STARTING
    collected_data: RequirementsData = Field(default_factory=RequirementsData)
    question_history: list[AskedQuestion] = Field(default_factory=list)
    remaining_questions: list[DynamicQuestion] = Field(default_factory=list)
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    suggested_answers: dict[RequirementField, ResponseValue] = Field(default_factory=dict)
    auto_fill_result: Optional[AutoFillResult] = None
    defaults_context: Optional[SmartDefaultContext] = None

    @property
    def is_complete(self) -> bool:
        return self.state == ConversationState.COMPLETE
