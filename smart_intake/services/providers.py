"""
Collaborator contracts for default sources, document extraction,
question generation and the learning channel.

Concrete rule engines, pattern stores and extractors live outside this
package. Two small providers ship here because they need nothing but
the context they are handed: the document-context reader and a
table-driven static provider.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Optional, Protocol, runtime_checkable

from smart_intake.config import get_settings
from smart_intake.schemas.conversation import (
    AcquisitionType,
    DynamicQuestion,
    HistoricalAcquisition,
)
from smart_intake.schemas.defaults import (
    DefaultSource,
    FieldDefault,
    SmartDefaultContext,
    UserInteraction,
)
from smart_intake.schemas.documents import ExtractedContext, ParsedDocument
from smart_intake.schemas.fields import RequirementField, field_key_variations
from smart_intake.schemas.values import ResponseValue, value_from_text


@runtime_checkable
class DefaultProvider(Protocol):
    """Proposes at most one value for a field."""

    async def get_default(
        self, field: RequirementField, context: SmartDefaultContext
    ) -> Optional[FieldDefault]: ...


@runtime_checkable
class PatternLearningProvider(Protocol):
    """Read and write paths of the user-pattern learning model."""

    async def predict(self, field: RequirementField) -> Optional[FieldDefault]: ...

    async def predict_sequence(
        self,
        field: RequirementField,
        prior_fields: Mapping[RequirementField, ResponseValue],
    ) -> Optional[FieldDefault]: ...

    async def predict_time_aware(self, field: RequirementField) -> Optional[FieldDefault]: ...

    async def learn(self, interaction: UserInteraction) -> None: ...


@runtime_checkable
class DocumentExtractor(Protocol):
    async def extract_context(self, documents: Sequence[ParsedDocument]) -> ExtractedContext: ...


@runtime_checkable
class QuestionGenerator(Protocol):
    async def generate_questions(
        self,
        acquisition_type: AcquisitionType,
        extracted_context: ExtractedContext,
        historical_data: Sequence[HistoricalAcquisition],
    ) -> list[DynamicQuestion]: ...


class DocumentContextProvider:
    """Reads a field's value straight out of the extracted-document map."""

    def __init__(self, confidence: float | None = None) -> None:
        self.confidence = (
            confidence if confidence is not None else get_settings().document_context_confidence
        )

    async def get_default(
        self, field: RequirementField, context: SmartDefaultContext
    ) -> Optional[FieldDefault]:
        for key in field_key_variations(field):
            raw = context.extracted_data.get(key)
            if raw and raw.strip():
                return FieldDefault(
                    value=value_from_text(field, raw),
                    confidence=self.confidence,
                    source=DefaultSource.DOCUMENT_CONTEXT,
                )
        return None


class StaticDefaultsProvider:
    """
    Table-driven defaults, e.g. organization-wide rules loaded from config.

    Each entry maps a field to the value, confidence and source tag to
    report for it.
    """

    def __init__(
        self,
        table: Mapping[RequirementField, tuple[ResponseValue, float]],
        source: DefaultSource = DefaultSource.SYSTEM_DEFAULT,
    ) -> None:
        self._defaults = {
            field: FieldDefault(value=value, confidence=confidence, source=source)
            for field, (value, confidence) in table.items()
        }

    async def get_default(
        self, field: RequirementField, context: SmartDefaultContext
    ) -> Optional[FieldDefault]:
        return self._defaults.get(field)
