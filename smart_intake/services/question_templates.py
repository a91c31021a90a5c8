"""
Template-driven question generation.

A plain implementation of the question-generation contract: every
acquisition type gets the base questions plus a few of its own, in a
natural conversational order. Richer generators (history-aware,
LLM-backed) plug into the orchestrator the same way.
"""

from __future__ import annotations

from typing import Any, Sequence

from smart_intake.logging_config import get_logger
from smart_intake.schemas.conversation import (
    AcquisitionType,
    DynamicQuestion,
    HistoricalAcquisition,
    QuestionPriority,
    ResponseType,
    ValidationKind,
    ValidationRule,
)
from smart_intake.schemas.documents import ExtractedContext
from smart_intake.schemas.fields import RequirementField as F

logger = get_logger(__name__)


BASE_QUESTIONS: list[dict[str, Any]] = [
    {
        "field": F.PROJECT_TITLE,
        "prompt": "What should we call this acquisition?",
        "response_type": ResponseType.TEXT,
        "priority": QuestionPriority.CRITICAL,
        "validation": ValidationRule(
            kind=ValidationKind.MIN_LENGTH, value=3, error_message="Title is too short",
        ),
        "examples": ["Field laptops refresh", "HVAC maintenance FY26"],
    },
    {
        "field": F.ESTIMATED_VALUE,
        "prompt": "What is the estimated total value?",
        "response_type": ResponseType.NUMERIC,
        "priority": QuestionPriority.CRITICAL,
        "validation": ValidationRule(
            kind=ValidationKind.RANGE, value=(0, 1_000_000_000),
            error_message="Enter a positive dollar amount",
        ),
        "examples": ["25000", "$1,250,000"],
    },
    {
        "field": F.REQUIRED_DATE,
        "prompt": "When do you need this delivered or started?",
        "response_type": ResponseType.DATE,
        "priority": QuestionPriority.CRITICAL,
        "validation": ValidationRule(
            kind=ValidationKind.FUTURE_DATE, error_message="Pick a date in the future",
        ),
    },
    {
        "field": F.VENDOR_NAME,
        "prompt": "Do you have a preferred vendor?",
        "response_type": ResponseType.TEXT,
        "priority": QuestionPriority.HIGH,
        "examples": ["Acme Supply Co.", "Open Competition"],
    },
    {
        "field": F.FUNDING_SOURCE,
        "prompt": "Which budget line or appropriation funds this?",
        "response_type": ResponseType.TEXT,
        "priority": QuestionPriority.HIGH,
    },
    {
        "field": F.DESCRIPTION,
        "prompt": "Briefly describe what you need.",
        "response_type": ResponseType.TEXT,
        "priority": QuestionPriority.MEDIUM,
    },
    {
        "field": F.JUSTIFICATION,
        "prompt": "Why is this acquisition needed?",
        "response_type": ResponseType.TEXT,
        "priority": QuestionPriority.MEDIUM,
    },
    {
        "field": F.POINT_OF_CONTACT,
        "prompt": "Who is the point of contact for this request?",
        "response_type": ResponseType.TEXT,
        "priority": QuestionPriority.LOW,
    },
]

TYPE_QUESTIONS: dict[AcquisitionType, list[dict[str, Any]]] = {
    AcquisitionType.SUPPLIES: [
        {
            "field": F.TECHNICAL_SPECS,
            "prompt": "What are the key technical specifications?",
            "response_type": ResponseType.TEXT,
            "priority": QuestionPriority.HIGH,
        },
        {
            "field": F.DELIVERY_INSTRUCTIONS,
            "prompt": "Any delivery instructions?",
            "response_type": ResponseType.TEXT,
            "priority": QuestionPriority.LOW,
        },
    ],
    AcquisitionType.SERVICES: [
        {
            "field": F.PERFORMANCE_LOCATION,
            "prompt": "Where will the work be performed?",
            "response_type": ResponseType.TEXT,
            "priority": QuestionPriority.HIGH,
        },
        {
            "field": F.CONTRACT_TYPE,
            "prompt": "What contract type fits best?",
            "response_type": ResponseType.SELECTION,
            "options": ["Firm-Fixed-Price", "Time-and-Materials", "Cost-Plus"],
            "priority": QuestionPriority.MEDIUM,
        },
    ],
    AcquisitionType.CONSTRUCTION: [
        {
            "field": F.PERFORMANCE_LOCATION,
            "prompt": "What is the site address?",
            "response_type": ResponseType.TEXT,
            "priority": QuestionPriority.HIGH,
        },
        {
            "field": F.INSPECTION_REQUIREMENTS,
            "prompt": "What inspections are required?",
            "response_type": ResponseType.TEXT,
            "priority": QuestionPriority.MEDIUM,
        },
    ],
    AcquisitionType.RESEARCH_AND_DEVELOPMENT: [
        {
            "field": F.TECHNICAL_SPECS,
            "prompt": "What research objectives should the work meet?",
            "response_type": ResponseType.TEXT,
            "priority": QuestionPriority.HIGH,
        },
        {
            "field": F.SET_ASIDE_TYPE,
            "prompt": "Is this set aside for a particular business category?",
            "response_type": ResponseType.SELECTION,
            "options": ["None", "Small Business", "8(a)", "HUBZone", "SDVOSB", "WOSB"],
            "priority": QuestionPriority.LOW,
        },
    ],
}


class TemplateQuestionGenerator:
    """Builds fresh DynamicQuestions from the templates for each session."""

    def __init__(
        self,
        base_questions: list[dict[str, Any]] | None = None,
        type_questions: dict[AcquisitionType, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.base_questions = base_questions if base_questions is not None else BASE_QUESTIONS
        self.type_questions = type_questions if type_questions is not None else TYPE_QUESTIONS

    async def generate_questions(
        self,
        acquisition_type: AcquisitionType,
        extracted_context: ExtractedContext,
        historical_data: Sequence[HistoricalAcquisition],
    ) -> list[DynamicQuestion]:
        templates = [*self.base_questions, *self.type_questions.get(acquisition_type, [])]
        questions = [DynamicQuestion(**t) for t in templates]
        logger.debug(
            "questions_generated",
            acquisition_type=acquisition_type.value,
            count=len(questions),
            history=len(historical_data),
        )
        return questions
