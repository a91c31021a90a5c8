"""Tests for ConversationOrchestrator: session lifecycle end to end."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import (
    FakeExtractor,
    FakeLearningProvider,
    FakeProvider,
    FixedQuestionGenerator,
    text_default,
)
from smart_intake.schemas.conversation import (
    AcquisitionType,
    ConfidenceLevel,
    ConversationContext,
    ConversationState,
    QuestionPriority as P,
    UserProfile,
    UserResponse,
)
from smart_intake.schemas.defaults import DefaultSource
from smart_intake.schemas.documents import ExtractedContext, ParsedDocument, PricingInfo, VendorInfo
from smart_intake.schemas.fields import RequirementField as F
from smart_intake.schemas.values import NumericValue, SkipValue, TextValue
from smart_intake.services.conversation_orchestrator import ConversationOrchestrator
from smart_intake.services.defaults_aggregator import DefaultsAggregator

QUOTE = ParsedDocument(file_name="quote.pdf", document_type="quote")
FIXED_TODAY = date(2026, 8, 15)
NOW = datetime(2026, 8, 15, 12, 0, tzinfo=timezone.utc)


def _orchestrator(settings, fields, contextual=None, learner=None, extractor=None, document=False, now=None):
    if document:
        aggregator = DefaultsAggregator.create(
            learning_provider=learner, contextual_provider=contextual, settings=settings,
        )
    else:
        aggregator = DefaultsAggregator(
            learning_provider=learner, contextual_provider=contextual, settings=settings,
        )
    return ConversationOrchestrator(
        aggregator=aggregator,
        question_generator=FixedQuestionGenerator(fields),
        document_extractor=extractor,
        settings=settings,
        today=lambda: FIXED_TODAY,
        now=now or (lambda: datetime.now(timezone.utc)),
    )


def _answer(prompt, value, seconds_ago=0):
    return UserResponse(
        question_id=prompt.question.id,
        response_type=prompt.question.response_type,
        value=value,
        timestamp=datetime.now(timezone.utc) - timedelta(seconds=seconds_ago),
    )


@pytest.fixture
def conversation_context():
    return ConversationContext(
        acquisition_type=AcquisitionType.SUPPLIES,
        user_profile=UserProfile(name="Dana", organization_unit="Facilities"),
    )


@pytest.fixture
def four_field_setup(settings):
    learner = FakeLearningProvider()
    contextual = FakeProvider({
        F.FUNDING_SOURCE: text_default("O&M", 0.9),
        F.POINT_OF_CONTACT: text_default("Contracting Office", 0.88),
        F.JUSTIFICATION: text_default("Replace aging equipment", 0.7),
    })
    orchestrator = _orchestrator(
        settings,
        [
            (F.FUNDING_SOURCE, P.HIGH),
            (F.POINT_OF_CONTACT, P.LOW),
            (F.JUSTIFICATION, P.MEDIUM),
            (F.DESCRIPTION, P.MEDIUM),
        ],
        contextual=contextual,
        learner=learner,
    )
    return orchestrator, learner


class TestStartConversation:
    @pytest.mark.asyncio
    async def test_auto_fill_trims_the_question_list(self, four_field_setup, conversation_context):
        orchestrator, _ = four_field_setup

        session = await orchestrator.start_conversation(conversation_context)

        assert [q.field for q in session.remaining_questions] == [F.JUSTIFICATION, F.DESCRIPTION]
        assert session.collected_data.additional_fields == {
            F.FUNDING_SOURCE: TextValue(value="O&M"),
            F.POINT_OF_CONTACT: TextValue(value="Contracting Office"),
        }
        assert session.suggested_answers == {F.JUSTIFICATION: TextValue(value="Replace aging equipment")}
        assert session.confidence == ConfidenceLevel.MEDIUM
        assert session.state == ConversationState.GATHERING_BASIC_INFO
        assert session.auto_fill_result.summary.must_ask_count == 1

    @pytest.mark.asyncio
    async def test_defaults_context_carries_fiscal_and_user_facts(self, four_field_setup, conversation_context):
        orchestrator, _ = four_field_setup

        session = await orchestrator.start_conversation(conversation_context)

        ctx = session.defaults_context
        assert ctx.session_id == session.id
        assert ctx.organization_unit == "Facilities"
        assert ctx.acquisition_type == "supplies"
        assert ctx.fiscal_year == "2026"
        assert ctx.fiscal_quarter == "Q4"
        assert ctx.is_end_of_fiscal_year is True
        assert ctx.days_until_fy_end == 46

    @pytest.mark.asyncio
    async def test_remaining_questions_sorted_by_priority(self, settings, conversation_context):
        orchestrator = _orchestrator(
            settings, [(F.DESCRIPTION, P.LOW), (F.PROJECT_TITLE, P.CRITICAL), (F.JUSTIFICATION, P.LOW)],
        )

        session = await orchestrator.start_conversation(conversation_context)

        assert [q.field for q in session.remaining_questions] == [
            F.PROJECT_TITLE, F.DESCRIPTION, F.JUSTIFICATION,
        ]
        assert session.confidence == ConfidenceLevel.LOW

    @pytest.mark.asyncio
    async def test_extraction_failure_is_tolerated(self, settings):
        extractor = FakeExtractor(error=RuntimeError("OCR service down"))
        orchestrator = _orchestrator(settings, [(F.VENDOR_NAME, P.HIGH)], extractor=extractor)
        context = ConversationContext(acquisition_type=AcquisitionType.SERVICES, uploaded_documents=[QUOTE])

        session = await orchestrator.start_conversation(context)

        assert extractor.calls == 1
        assert session.state == ConversationState.GATHERING_BASIC_INFO
        assert session.defaults_context.extracted_data == {}
        assert len(session.remaining_questions) == 1

    @pytest.mark.asyncio
    async def test_extracted_context_prefills_collected_data(self, settings):
        extractor = FakeExtractor(ExtractedContext(
            vendor_info=VendorInfo(name="Acme Corp", uei="ABC123DEF456"),
            pricing=PricingInfo(total_price=Decimal("48000")),
            technical_details=["16GB RAM", "14in display"],
        ))
        orchestrator = _orchestrator(
            settings,
            [(F.ESTIMATED_VALUE, P.CRITICAL), (F.TECHNICAL_SPECS, P.HIGH)],
            extractor=extractor,
            document=True,
        )
        context = ConversationContext(acquisition_type=AcquisitionType.SUPPLIES, uploaded_documents=[QUOTE])

        session = await orchestrator.start_conversation(context)

        data = session.collected_data
        assert data.vendor_info.name == "Acme Corp"
        assert data.estimated_value == Decimal("48000")
        # Critical field with a document value is suggested, never auto-filled
        assert session.suggested_answers[F.ESTIMATED_VALUE] == NumericValue(value=Decimal("48000"))
        # Document value auto-fills technical specs, replacing the extracted entries
        assert data.technical_requirements == ["16GB RAM; 14in display"]


class TestConversationFlow:
    @pytest.mark.asyncio
    async def test_full_walkthrough(self, four_field_setup, conversation_context):
        orchestrator, learner = four_field_setup
        session = await orchestrator.start_conversation(conversation_context)

        first = await orchestrator.next_prompt(session)
        assert first.question.field == F.JUSTIFICATION
        assert first.suggested_answer == TextValue(value="Replace aging equipment")
        assert first.confidence_in_suggestion == pytest.approx(0.7)
        assert first.is_required is False
        assert session.state == ConversationState.CONFIRMING_DETAILS

        second = await orchestrator.process_user_response(_answer(first, first.suggested_answer), session)
        assert second.question.field == F.DESCRIPTION
        assert second.suggested_answer is None
        assert session.state == ConversationState.FILLING_GAPS

        done = await orchestrator.process_user_response(
            _answer(second, TextValue(value="Twenty laptops")), session,
        )

        assert done is None
        assert session.is_complete
        assert session.remaining_questions == []
        assert [h.question.field for h in session.question_history] == [F.JUSTIFICATION, F.DESCRIPTION]
        assert session.collected_data.business_justification == "Replace aging equipment"
        assert session.collected_data.description == "Twenty laptops"

        accepted, typed = learner.learned
        assert accepted.field == F.JUSTIFICATION
        assert accepted.accepted_suggestion is True
        assert typed.accepted_suggestion is False
        assert typed.suggested_value is None

    @pytest.mark.asyncio
    async def test_every_answer_shrinks_remaining_until_complete(self, settings, conversation_context):
        orchestrator = _orchestrator(
            settings, [(F.PROJECT_TITLE, P.CRITICAL), (F.DESCRIPTION, P.MEDIUM), (F.COST_CENTER, P.LOW)],
        )
        session = await orchestrator.start_conversation(conversation_context)

        prompt = await orchestrator.next_prompt(session)
        asked = 0
        while prompt is not None:
            before = len(session.remaining_questions)
            prompt = await orchestrator.process_user_response(_answer(prompt, TextValue(value="x")), session)
            assert len(session.remaining_questions) == before - 1
            asked += 1

        assert asked == 3
        assert session.state == ConversationState.COMPLETE

    @pytest.mark.asyncio
    async def test_interaction_reports_elapsed_time(self, settings, conversation_context):
        learner = FakeLearningProvider()
        orchestrator = _orchestrator(settings, [(F.DESCRIPTION, P.MEDIUM)], learner=learner)
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)

        await orchestrator.process_user_response(
            _answer(prompt, TextValue(value="Laptops"), seconds_ago=12), session,
        )

        interaction = learner.learned[0]
        assert interaction.session_id == session.id
        assert interaction.time_to_respond >= 12
        assert interaction.document_context is False

    @pytest.mark.asyncio
    async def test_skip_records_history_without_touching_data(self, settings, conversation_context):
        orchestrator = _orchestrator(settings, [(F.DESCRIPTION, P.MEDIUM), (F.COST_CENTER, P.LOW)])
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)

        following = await orchestrator.process_user_response(_answer(prompt, SkipValue()), session)

        assert session.question_history[0].skipped is True
        assert session.collected_data.description is None
        assert following.question.field == F.COST_CENTER

    @pytest.mark.asyncio
    async def test_vendor_answers_merge_into_extracted_vendor(self, settings):
        learner = FakeLearningProvider()
        extractor = FakeExtractor(ExtractedContext(vendor_info=VendorInfo(uei="ABC123DEF456")))
        orchestrator = _orchestrator(settings, [(F.VENDOR_NAME, P.HIGH)], learner=learner, extractor=extractor)
        context = ConversationContext(acquisition_type=AcquisitionType.SUPPLIES, uploaded_documents=[QUOTE])
        session = await orchestrator.start_conversation(context)
        prompt = await orchestrator.next_prompt(session)

        await orchestrator.process_user_response(_answer(prompt, TextValue(value="Acme Corp")), session)

        vendor = session.collected_data.vendor_info
        assert vendor.name == "Acme Corp"
        assert vendor.uei == "ABC123DEF456"
        assert learner.learned[0].document_context is True

    @pytest.mark.asyncio
    async def test_unknown_question_id_leaves_session_untouched(self, four_field_setup, conversation_context):
        orchestrator, learner = four_field_setup
        session = await orchestrator.start_conversation(conversation_context)
        await orchestrator.next_prompt(session)
        snapshot = session.model_copy(deep=True)

        prompt = await orchestrator.process_user_response(
            UserResponse(question_id="no-such-question", response_type="text", value=TextValue(value="?")),
            session,
        )

        assert session == snapshot
        assert learner.learned == []
        assert prompt.question.field == F.JUSTIFICATION

    @pytest.mark.asyncio
    async def test_unknown_id_after_completion_returns_none(self, settings, conversation_context):
        orchestrator = _orchestrator(settings, [])
        session = await orchestrator.start_conversation(conversation_context)
        assert await orchestrator.next_prompt(session) is None

        result = await orchestrator.process_user_response(
            UserResponse(question_id="stale", response_type="skip", value=SkipValue()), session,
        )

        assert result is None
        assert session.state == ConversationState.COMPLETE

    @pytest.mark.asyncio
    async def test_learning_failure_does_not_break_flow(self, settings, conversation_context):
        learner = FakeLearningProvider(fail_on_learn=True)
        orchestrator = _orchestrator(settings, [(F.DESCRIPTION, P.MEDIUM)], learner=learner)
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)

        result = await orchestrator.process_user_response(_answer(prompt, TextValue(value="x")), session)

        assert result is None
        assert session.is_complete

    @pytest.mark.asyncio
    async def test_stalled_learner_does_not_block_the_answer(self, settings, conversation_context):
        learner = FakeLearningProvider(learn_delay=3600)
        orchestrator = _orchestrator(
            settings.model_copy(update={"learning_timeout_seconds": 0.05}),
            [(F.DESCRIPTION, P.MEDIUM), (F.COST_CENTER, P.LOW)],
            learner=learner,
        )
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)

        following = await asyncio.wait_for(
            orchestrator.process_user_response(_answer(prompt, TextValue(value="x")), session),
            timeout=2,
        )

        assert following.question.field == F.COST_CENTER
        assert session.collected_data.description == "x"
        assert learner.learned == []

    @pytest.mark.asyncio
    async def test_naive_timestamp_is_read_as_utc(self, settings, conversation_context):
        learner = FakeLearningProvider()
        orchestrator = _orchestrator(settings, [(F.DESCRIPTION, P.MEDIUM)], learner=learner, now=lambda: NOW)
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)

        result = await orchestrator.process_user_response(
            UserResponse(
                question_id=prompt.question.id,
                response_type=prompt.question.response_type,
                value=TextValue(value="Laptops"),
                timestamp=datetime(2026, 8, 15, 11, 59, 15),
            ),
            session,
        )

        assert result is None
        assert len(session.question_history) == 1
        assert learner.learned[0].time_to_respond == pytest.approx(45.0)

    @pytest.mark.asyncio
    async def test_future_timestamp_counts_as_zero_seconds(self, settings, conversation_context):
        learner = FakeLearningProvider()
        orchestrator = _orchestrator(settings, [(F.DESCRIPTION, P.MEDIUM)], learner=learner, now=lambda: NOW)
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)

        await orchestrator.process_user_response(
            UserResponse(
                question_id=prompt.question.id,
                response_type=prompt.question.response_type,
                value=TextValue(value="Laptops"),
                timestamp=NOW + timedelta(minutes=5),
            ),
            session,
        )

        assert learner.learned[0].time_to_respond == 0.0


class TestPrompts:
    @pytest.mark.asyncio
    async def test_help_text_names_source_and_confidence(self, settings, conversation_context):
        learner = FakeLearningProvider(
            time_aware={F.FUNDING_SOURCE: text_default("Grant 7", 0.82, DefaultSource.USER_PATTERN)},
        )
        orchestrator = _orchestrator(settings, [(F.FUNDING_SOURCE, P.HIGH)], learner=learner)
        session = await orchestrator.start_conversation(conversation_context)

        prompt = await orchestrator.next_prompt(session)

        assert prompt.help_text == (
            "Budget line or appropriation code. Based on your previous selections (82% confidence)"
        )

    @pytest.mark.asyncio
    async def test_critical_question_is_required(self, settings, conversation_context):
        orchestrator = _orchestrator(settings, [(F.PROJECT_TITLE, P.CRITICAL)])
        session = await orchestrator.start_conversation(conversation_context)

        prompt = await orchestrator.next_prompt(session)

        assert prompt.is_required is True
        assert prompt.help_text is None
        assert session.state == ConversationState.GATHERING_BASIC_INFO


class TestFeedback:
    @pytest.mark.asyncio
    async def test_rejected_auto_fill_is_replaced(self, four_field_setup, conversation_context):
        orchestrator, learner = four_field_setup
        session = await orchestrator.start_conversation(conversation_context)

        await orchestrator.process_auto_fill_feedback(
            F.FUNDING_SOURCE, TextValue(value="O&M"), TextValue(value="Grant 7"), False, session,
        )

        assert session.collected_data.additional_fields[F.FUNDING_SOURCE] == TextValue(value="Grant 7")
        assert orchestrator.auto_fill_metrics.feedback_rejected == 1
        assert learner.learned[0].suggested_value == TextValue(value="O&M")

    @pytest.mark.asyncio
    async def test_feedback_reports_last_response_time(self, settings, conversation_context):
        learner = FakeLearningProvider()
        contextual = FakeProvider({F.FUNDING_SOURCE: text_default("O&M", 0.9)})
        orchestrator = _orchestrator(
            settings,
            [(F.FUNDING_SOURCE, P.HIGH), (F.DESCRIPTION, P.MEDIUM)],
            contextual=contextual,
            learner=learner,
            now=lambda: NOW,
        )
        session = await orchestrator.start_conversation(conversation_context)
        prompt = await orchestrator.next_prompt(session)
        await orchestrator.process_user_response(
            UserResponse(
                question_id=prompt.question.id,
                response_type=prompt.question.response_type,
                value=TextValue(value="Laptops"),
                timestamp=NOW - timedelta(seconds=45),
            ),
            session,
        )

        assert session.defaults_context.response_time == pytest.approx(45.0)

        await orchestrator.process_auto_fill_feedback(
            F.FUNDING_SOURCE, TextValue(value="O&M"), TextValue(value="O&M"), True, session,
        )

        assert learner.learned[-1].field == F.FUNDING_SOURCE
        assert learner.learned[-1].time_to_respond == pytest.approx(45.0)

    @pytest.mark.asyncio
    async def test_get_smart_defaults_without_context(self, four_field_setup):
        orchestrator, _ = four_field_setup

        default = await orchestrator.get_smart_defaults(F.FUNDING_SOURCE)

        assert default.value == TextValue(value="O&M")
