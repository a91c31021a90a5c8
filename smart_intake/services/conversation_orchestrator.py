"""
Conversation Orchestrator for adaptive requirement intake.

Starts a conversation by pulling context out of uploaded documents,
generating the candidate question set, and auto-filling whatever the
default sources are sure about. Afterwards it serves one question at a
time, folds each answer into the collected data, and reports the
outcome to the learning provider so future suggestions improve.

The caller holds the ConversationSession; every method here mutates the
session it is handed and keeps no per-session state of its own.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Callable, Optional

from smart_intake.config import Settings, get_settings
from smart_intake.logging_config import get_logger, session_context
from smart_intake.schemas.conversation import (
    AskedQuestion,
    ConfidenceLevel,
    ConversationContext,
    ConversationSession,
    ConversationState,
    DynamicQuestion,
    NextPrompt,
    QuestionPriority,
    UserResponse,
)
from smart_intake.schemas.defaults import (
    AutoFillResult,
    FieldDefault,
    SmartDefaultContext,
    UserInteraction,
)
from smart_intake.schemas.documents import ExtractedContext, ParsedDocument
from smart_intake.schemas.fields import RequirementField
from smart_intake.schemas.values import ResponseValue, SkipValue
from smart_intake.services import fiscal
from smart_intake.services.auto_fill import AutoFillClassifier, AutoFillMetrics
from smart_intake.services.defaults_aggregator import DefaultsAggregator
from smart_intake.services.help_text import generate_help_text
from smart_intake.services.providers import DocumentExtractor, QuestionGenerator
from smart_intake.services.requirements_data import apply_value, has_value, prefill_from_context

logger = get_logger(__name__)

HIGH_CONFIDENCE_SCORE = 0.7
MEDIUM_CONFIDENCE_SCORE = 0.4
SUGGESTED_FIELD_WEIGHT = 0.5

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

def overall_confidence(result: AutoFillResult) -> ConfidenceLevel:
    """(auto-filled + half of suggested) / total, bucketed into a level."""
    total = result.summary.total_fields
    if not total:
        return ConfidenceLevel.LOW

    score = (
        result.summary.auto_filled_count
        + SUGGESTED_FIELD_WEIGHT * result.summary.suggested_count
    ) / total

    if score > HIGH_CONFIDENCE_SCORE:
        return ConfidenceLevel.HIGH
    if score > MEDIUM_CONFIDENCE_SCORE:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW

class ConversationOrchestrator:
    """
    Drives a ConversationSession from start to completion.

    Collaborators are injected: the aggregator (and through it every
    default source and the learning provider), the question generator,
    and optionally a document extractor and a pre-built classifier.
    """

    def __init__(
        self,
        aggregator: DefaultsAggregator,
        question_generator: QuestionGenerator,
        classifier: AutoFillClassifier | None = None,
        document_extractor: DocumentExtractor | None = None,
        settings: Settings | None = None,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings or get_settings()
        self.aggregator = aggregator
        self.question_generator = question_generator
        self.classifier = classifier or AutoFillClassifier(aggregator, settings=self.settings)
        self.document_extractor = document_extractor
        self._today = today
        self._now = now

    # -- Caller-facing API --

    async def start_conversation(self, context: ConversationContext) -> ConversationSession:
        """
        Build a session that only asks what the default sources could not fill.

        Extraction problems never abort the conversation; they just mean
        more questions.
        """
        session = ConversationSession()
        with session_context(session.id):
            await self._start(session, context)
        return session

    async def next_prompt(self, session: ConversationSession) -> NextPrompt | None:
        """
        The question the session is waiting on, or None once it is complete.

        Finding nothing left to ask is the one transition into COMPLETE.
        """
        with session_context(session.id):
            return await self._advance(session)

    async def process_user_response(
        self,
        response: UserResponse,
        session: ConversationSession,
    ) -> NextPrompt | None:
        """
        Record an answer and move on to the next question.

        A response for a question that is not pending (stale UI, double
        submit) is dropped without touching the session.
        """
        with session_context(session.id):
            question = next(
                (q for q in session.remaining_questions if q.id == response.question_id),
                None,
            )
            if question is None:
                logger.warning("unknown_question_id", question_id=response.question_id)
                pending = self.select_next_question(session)
                if pending is None:
                    return None
                return await self._prompt_for(session, pending, record=False)

            await self._record_answer(session, question, response)
            return await self._advance(session)

    async def extract_context_from_documents(
        self, documents: Sequence[ParsedDocument]
    ) -> ExtractedContext:
        """Run the extractor; any failure degrades to an empty context."""
        if self.document_extractor is None or not documents:
            return ExtractedContext()
        try:
            return await self.document_extractor.extract_context(documents)
        except Exception as e:
            logger.warning("context_extraction_failed", documents=len(documents), error=str(e))
            return ExtractedContext()

    async def learn_from_interaction(self, interaction: UserInteraction) -> None:
        await self.aggregator.learn(interaction)

    async def get_smart_defaults(
        self,
        field: RequirementField,
        context: SmartDefaultContext | None = None,
    ) -> FieldDefault | None:
        """Current best default for ``field``; fiscal facts only if no context is given."""
        return await self.aggregator.get_default(field, context or self._fiscal_context())

    async def process_auto_fill_feedback(
        self,
        field: RequirementField,
        auto_filled_value: ResponseValue,
        user_value: ResponseValue,
        was_accepted: bool,
        session: ConversationSession,
    ) -> None:
        """User reviewed an auto-filled value; count it and feed it back."""
        context = session.defaults_context or self._fiscal_context(session)
        await self.classifier.record_feedback(
            field=field,
            auto_filled_value=auto_filled_value,
            user_value=user_value,
            was_accepted=was_accepted,
            context=context,
        )
        if not was_accepted:
            apply_value(session.collected_data, field, user_value, replace=True)

    @property
    def auto_fill_metrics(self) -> AutoFillMetrics:
        return self.classifier.metrics

    # -- Question selection --

    def select_next_question(self, session: ConversationSession) -> DynamicQuestion | None:
        """
        First remaining question whose field is still open.

        A field can fill up between generation and asking (auto-fill,
        vendor records merged from another answer), so both the history
        and the collected data are checked.
        """
        answered = {asked.question.field for asked in session.question_history}
        return next(
            (
                q for q in session.remaining_questions
                if q.field not in answered and not has_value(session.collected_data, q.field)
            ),
            None,
        )

    # -- Private helpers --

    async def _start(self, session: ConversationSession, context: ConversationContext) -> None:
        session.state = ConversationState.EXTRACTING_FROM_DOCUMENTS
        extracted = await self.extract_context_from_documents(context.uploaded_documents)

        questions = await self.question_generator.generate_questions(
            context.acquisition_type,
            extracted,
            context.historical_data,
        )

        defaults_context = self._build_defaults_context(session, context, extracted)
        auto_fill = await self.classifier.classify([q.field for q in questions], defaults_context)

        session.remaining_questions = sorted(
            (q for q in questions if q.field not in auto_fill.auto_filled_fields),
            key=lambda q: q.priority,
        )

        # Extracted values first; auto-fill wins where both speak
        collected = prefill_from_context(extracted)
        for field, value in auto_fill.auto_filled_fields.items():
            apply_value(collected, field, value, replace=True)
        session.collected_data = collected

        session.suggested_answers = {
            field: default.value for field, default in auto_fill.suggested_fields.items()
        }
        session.auto_fill_result = auto_fill
        session.defaults_context = defaults_context
        session.confidence = overall_confidence(auto_fill)
        session.state = ConversationState.GATHERING_BASIC_INFO

        logger.info(
            "conversation_started",
            acquisition_type=context.acquisition_type.value,
            documents=len(context.uploaded_documents),
            questions=len(questions),
            remaining=len(session.remaining_questions),
            auto_filled=auto_fill.summary.auto_filled_count,
            suggested=auto_fill.summary.suggested_count,
            confidence=session.confidence.value,
        )

    async def _advance(self, session: ConversationSession) -> NextPrompt | None:
        question = self.select_next_question(session)
        if question is None:
            self._complete(session)
            return None
        return await self._prompt_for(session, question, record=True)

    async def _record_answer(
        self,
        session: ConversationSession,
        question: DynamicQuestion,
        response: UserResponse,
    ) -> None:
        elapsed = self._seconds_since(response.timestamp)

        session.question_history.append(AskedQuestion(
            question=question,
            response=response,
            skipped=isinstance(response.value, SkipValue),
        ))
        session.remaining_questions = [
            q for q in session.remaining_questions if q.id != question.id
        ]
        apply_value(session.collected_data, question.field, response.value)

        suggested = session.suggested_answers.get(question.field)
        accepted = suggested is not None and suggested == response.value
        if session.defaults_context is not None:
            session.defaults_context = session.defaults_context.model_copy(
                update={"response_time": elapsed}
            )

        logger.info(
            "question_answered",
            field=question.field.value,
            skipped=isinstance(response.value, SkipValue),
            accepted_suggestion=accepted,
            remaining=len(session.remaining_questions),
        )

        await self.learn_from_interaction(UserInteraction(
            session_id=session.id,
            field=question.field,
            suggested_value=suggested,
            accepted_suggestion=accepted,
            final_value=response.value,
            time_to_respond=elapsed,
            document_context=self._had_document_context(session),
        ))

    async def _prompt_for(
        self,
        session: ConversationSession,
        question: DynamicQuestion,
        record: bool,
    ) -> NextPrompt:
        context = session.defaults_context or self._fiscal_context(session)
        suggestion = await self.aggregator.get_default(question.field, context)

        if record:
            if suggestion is not None:
                session.suggested_answers[question.field] = suggestion.value
                session.state = ConversationState.CONFIRMING_DETAILS
            elif question.priority <= QuestionPriority.HIGH:
                session.state = ConversationState.GATHERING_BASIC_INFO
            else:
                session.state = ConversationState.FILLING_GAPS

        return NextPrompt(
            question=question,
            suggested_answer=suggestion.value if suggestion else None,
            confidence_in_suggestion=suggestion.confidence if suggestion else 0.0,
            is_required=question.priority == QuestionPriority.CRITICAL,
            help_text=generate_help_text(question.field, suggestion),
        )

    def _complete(self, session: ConversationSession) -> None:
        # Anything still listed was satisfied without being asked
        satisfied = len(session.remaining_questions)
        session.remaining_questions = []
        if session.state != ConversationState.COMPLETE:
            session.state = ConversationState.COMPLETE
            logger.info(
                "conversation_complete",
                asked=len(session.question_history),
                satisfied_without_asking=satisfied,
            )

    def _build_defaults_context(
        self,
        session: ConversationSession,
        context: ConversationContext,
        extracted: ExtractedContext,
    ) -> SmartDefaultContext:
        today = self._today()
        profile = context.user_profile
        return SmartDefaultContext(
            session_id=session.id,
            user_id=str(profile.id) if profile else "",
            organization_unit=profile.organization_unit if profile else "",
            acquisition_type=context.acquisition_type.value,
            extracted_data=extracted.to_field_mapping(),
            fiscal_year=fiscal.fiscal_year(today),
            fiscal_quarter=fiscal.fiscal_quarter(today),
            is_end_of_fiscal_year=fiscal.is_end_of_fiscal_year(today),
            days_until_fy_end=fiscal.days_until_fiscal_year_end(today),
            auto_fill_threshold=self.settings.auto_fill_threshold,
        )

    def _fiscal_context(self, session: Optional[ConversationSession] = None) -> SmartDefaultContext:
        today = self._today()
        extra = {"session_id": session.id} if session is not None else {}
        return SmartDefaultContext(
            fiscal_year=fiscal.fiscal_year(today),
            fiscal_quarter=fiscal.fiscal_quarter(today),
            is_end_of_fiscal_year=fiscal.is_end_of_fiscal_year(today),
            days_until_fy_end=fiscal.days_until_fiscal_year_end(today),
            auto_fill_threshold=self.settings.auto_fill_threshold,
            **extra,
        )

    def _seconds_since(self, timestamp: datetime) -> float:
        # Naive timestamps are taken as UTC
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return max((self._now() - timestamp).total_seconds(), 0.0)

    @staticmethod
    def _had_document_context(session: ConversationSession) -> bool:
        return bool(session.defaults_context and session.defaults_context.extracted_data)
