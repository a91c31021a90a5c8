"""Shared test fixtures for the intake engine."""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Optional

import pytest

from smart_intake.config import Settings
from smart_intake.schemas.conversation import (
    AcquisitionType,
    DynamicQuestion,
    HistoricalAcquisition,
    QuestionPriority,
    ResponseType,
)
from smart_intake.schemas.defaults import (
    DefaultSource,
    FieldDefault,
    SmartDefaultContext,
    UserInteraction,
)
from smart_intake.schemas.documents import ExtractedContext, ParsedDocument
from smart_intake.schemas.fields import RequirementField
from smart_intake.schemas.values import ResponseValue, TextValue


def text_default(text: str, confidence: float, source: DefaultSource = DefaultSource.CONTEXTUAL) -> FieldDefault:
    return FieldDefault(value=TextValue(value=text), confidence=confidence, source=source)


class FakeProvider:
    """DefaultProvider backed by a dict; counts calls per field."""

    def __init__(self, defaults: Optional[Mapping[RequirementField, FieldDefault]] = None, delay: float = 0.0):
        self.defaults = dict(defaults or {})
        self.delay = delay
        self.calls: list[RequirementField] = []

    async def get_default(self, field: RequirementField, context: SmartDefaultContext) -> Optional[FieldDefault]:
        self.calls.append(field)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.defaults.get(field)


class FailingProvider:
    def __init__(self, error: Exception | None = None):
        self.error = error or RuntimeError("rules store unavailable")
        self.calls = 0

    async def get_default(self, field: RequirementField, context: SmartDefaultContext) -> Optional[FieldDefault]:
        self.calls += 1
        raise self.error


class FakeLearningProvider:
    """PatternLearningProvider with canned predictions that records what it learns."""

    def __init__(
        self,
        standard: Optional[Mapping[RequirementField, FieldDefault]] = None,
        sequence: Optional[Mapping[RequirementField, FieldDefault]] = None,
        time_aware: Optional[Mapping[RequirementField, FieldDefault]] = None,
        fail_on_learn: bool = False,
        learn_delay: float = 0.0,
    ):
        self.standard = dict(standard or {})
        self.sequence = dict(sequence or {})
        self.time_aware = dict(time_aware or {})
        self.fail_on_learn = fail_on_learn
        self.learn_delay = learn_delay
        self.learned: list[UserInteraction] = []
        self.sequence_inputs: list[dict[RequirementField, ResponseValue]] = []

    async def predict(self, field: RequirementField) -> Optional[FieldDefault]:
        return self.standard.get(field)

    async def predict_sequence(
        self,
        field: RequirementField,
        prior_fields: Mapping[RequirementField, ResponseValue],
    ) -> Optional[FieldDefault]:
        self.sequence_inputs.append(dict(prior_fields))
        return self.sequence.get(field)

    async def predict_time_aware(self, field: RequirementField) -> Optional[FieldDefault]:
        return self.time_aware.get(field)

    async def learn(self, interaction: UserInteraction) -> None:
        if self.learn_delay:
            await asyncio.sleep(self.learn_delay)
        if self.fail_on_learn:
            raise ConnectionError("pattern store offline")
        self.learned.append(interaction)


class FakeExtractor:
    def __init__(self, context: ExtractedContext | None = None, error: Exception | None = None):
        self.context = context or ExtractedContext()
        self.error = error
        self.calls = 0

    async def extract_context(self, documents: Sequence[ParsedDocument]) -> ExtractedContext:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.context


class FixedQuestionGenerator:
    """Always returns freshly built questions for the given (field, priority) pairs."""

    def __init__(self, fields: Sequence[tuple[RequirementField, QuestionPriority]]):
        self.fields = list(fields)

    async def generate_questions(
        self,
        acquisition_type: AcquisitionType,
        extracted_context: ExtractedContext,
        historical_data: Sequence[HistoricalAcquisition],
    ) -> list[DynamicQuestion]:
        return [
            DynamicQuestion(
                field=field,
                prompt=f"What is the {field.value.replace('_', ' ')}?",
                response_type=ResponseType.TEXT,
                priority=priority,
            )
            for field, priority in self.fields
        ]


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    """Settings with the stock thresholds, independent of the environment."""
    return Settings(
        auto_fill_threshold=0.85,
        auto_fill_critical_fields=False,
        max_auto_fill_fields=20,
        min_confidence_threshold=0.65,
        agreement_boost=1.1,
        document_context_confidence=0.9,
        provider_timeout_seconds=5.0,
        learning_timeout_seconds=5.0,
        cache_ttl_seconds=300.0,
    )


@pytest.fixture
def context():
    return SmartDefaultContext(
        user_id="user-1",
        organization_unit="Facilities",
        acquisition_type=AcquisitionType.SUPPLIES.value,
        fiscal_year="2026",
        fiscal_quarter="Q1",
        auto_fill_threshold=0.85,
    )


@pytest.fixture
def clock():
    return FakeClock()
