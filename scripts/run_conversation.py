"""
CLI tool to walk through an intake conversation in the terminal.

Usage:
    python scripts/run_conversation.py [--type supplies] [--vendor "Acme"]

Examples:
    # Supplies acquisition, no documents
    python scripts/run_conversation.py

    # Pretend a quote was uploaded with a vendor and total price on it
    python scripts/run_conversation.py --type services --vendor "Acme Corp" --total 48000

Press Enter to accept a suggested answer, type "skip" to skip a question.
"""

import argparse
import asyncio
import os
import sys
from decimal import Decimal
from typing import Sequence

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv
load_dotenv(".env.local")

from smart_intake.config import get_settings
from smart_intake.logging_config import (
    generate_trace_id,
    get_logger,
    setup_logging,
    trace_id_var,
)
from smart_intake.schemas.conversation import (
    AcquisitionType,
    ConversationContext,
    UserProfile,
    UserResponse,
)
from smart_intake.schemas.defaults import DefaultSource
from smart_intake.schemas.documents import ExtractedContext, ParsedDocument, PricingInfo, VendorInfo
from smart_intake.schemas.fields import RequirementField
from smart_intake.schemas.values import SelectionValue, SkipValue, TextValue, value_as_text, value_from_text
from smart_intake.services.conversation_orchestrator import ConversationOrchestrator
from smart_intake.services.defaults_aggregator import DefaultsAggregator
from smart_intake.services.providers import StaticDefaultsProvider
from smart_intake.services.question_templates import TemplateQuestionGenerator

setup_logging()
logger = get_logger(__name__)

# Organization-wide defaults a real deployment would load from its rules store
DEMO_RULES = {
    RequirementField.FUNDING_SOURCE: (TextValue(value="O&M FY General"), 0.7),
    RequirementField.CONTRACT_TYPE: (SelectionValue(value="Firm-Fixed-Price"), 0.9),
    RequirementField.POINT_OF_CONTACT: (TextValue(value="Contracting Office"), 0.88),
}


class CommandLineExtractor:
    """Stands in for a document extractor using values passed on the command line."""

    def __init__(self, vendor: str | None, total: Decimal | None) -> None:
        self.vendor = vendor
        self.total = total

    async def extract_context(self, documents: Sequence[ParsedDocument]) -> ExtractedContext:
        return ExtractedContext(
            vendor_info=VendorInfo(name=self.vendor) if self.vendor else None,
            pricing=PricingInfo(total_price=self.total) if self.total is not None else None,
        )


async def run_conversation(
    acquisition_type: AcquisitionType,
    vendor: str | None = None,
    total: Decimal | None = None,
) -> None:
    """Run one conversation, reading answers from stdin."""
    settings = get_settings()
    aggregator = DefaultsAggregator.create(
        rules_provider=StaticDefaultsProvider(DEMO_RULES, source=DefaultSource.SYSTEM_DEFAULT),
        settings=settings,
    )
    orchestrator = ConversationOrchestrator(
        aggregator=aggregator,
        question_generator=TemplateQuestionGenerator(),
        document_extractor=CommandLineExtractor(vendor, total),
        settings=settings,
    )

    documents = [ParsedDocument(file_name="quote.pdf", document_type="quote")] if vendor or total else []
    context = ConversationContext(
        acquisition_type=acquisition_type,
        uploaded_documents=documents,
        user_profile=UserProfile(name="CLI User", organization_unit="Demo"),
    )

    trace_id_var.set(generate_trace_id())
    session = await orchestrator.start_conversation(context)

    result = session.auto_fill_result
    if result and result.auto_filled_fields:
        print("Auto-filled:")
        for field, value in result.auto_filled_fields.items():
            print(f"  {field.value}: {value_as_text(value)}")
    print(f"Confidence: {session.confidence.value}, {len(session.remaining_questions)} questions to go\n")

    prompt = await orchestrator.next_prompt(session)
    while prompt is not None:
        question = prompt.question
        print(question.prompt)
        if question.options:
            print(f"  options: {', '.join(question.options)}")
        if prompt.help_text:
            print(f"  ({prompt.help_text})")
        if prompt.suggested_answer is not None:
            print(f"  suggested: {value_as_text(prompt.suggested_answer)}")

        raw = input("> ").strip()
        if raw.lower() == "skip":
            value = SkipValue()
        elif not raw and prompt.suggested_answer is not None:
            value = prompt.suggested_answer
        else:
            value = value_from_text(question.field, raw)

        prompt = await orchestrator.process_user_response(
            UserResponse(question_id=question.id, response_type=question.response_type, value=value),
            session,
        )

    print("\nCollected requirements:")
    print(session.collected_data.model_dump_json(indent=2, exclude_defaults=True))
    logger.info("cli_conversation_finished", questions_asked=len(session.question_history))


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk through an intake conversation")
    parser.add_argument(
        "--type",
        choices=[t.value for t in AcquisitionType],
        default=AcquisitionType.SUPPLIES.value,
        help="Acquisition type",
    )
    parser.add_argument("--vendor", help="Vendor name found on an uploaded quote")
    parser.add_argument("--total", type=Decimal, help="Total price found on an uploaded quote")

    args = parser.parse_args()

    try:
        asyncio.run(run_conversation(
            acquisition_type=AcquisitionType(args.type),
            vendor=args.vendor,
            total=args.total,
        ))
    except (KeyboardInterrupt, EOFError):
        print("\nConversation abandoned.")


if __name__ == "__main__":
    main()
