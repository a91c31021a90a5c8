"""
Auto-Fill Classifier.

Decides, per field, whether an aggregated default is confident enough
to apply silently, should be shown for confirmation, or whether the
user has to be asked. Keeps running metrics on how often each bucket is
used and how often auto-filled values survive user review.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from smart_intake.config import Settings, get_settings
from smart_intake.logging_config import get_logger
from smart_intake.schemas.defaults import (
    AutoFillResult,
    AutoFillSummary,
    FieldDefault,
    SmartDefaultContext,
    UserInteraction,
)
from smart_intake.schemas.fields import CRITICAL_FIELDS, RequirementField
from smart_intake.schemas.values import ResponseValue
from smart_intake.services.defaults_aggregator import DefaultsAggregator

logger = get_logger(__name__)


@dataclass(frozen=True)
class AutoFillConfiguration:
    auto_fill_threshold: float = 0.85
    suggestion_threshold: float = 0.65
    auto_fill_critical_fields: bool = False
    max_auto_fill_fields: int = 20

    @classmethod
    def from_settings(cls, settings: Settings) -> AutoFillConfiguration:
        return cls(
            auto_fill_threshold=settings.auto_fill_threshold,
            suggestion_threshold=settings.min_confidence_threshold,
            auto_fill_critical_fields=settings.auto_fill_critical_fields,
            max_auto_fill_fields=settings.max_auto_fill_fields,
        )


@dataclass
class AutoFillMetrics:
    total_classifications: int = 0
    total_fields: int = 0
    auto_filled: int = 0
    suggested: int = 0
    must_ask: int = 0
    critical_downgrades: int = 0
    cap_downgrades: int = 0
    feedback_accepted: int = 0
    feedback_rejected: int = 0

    @property
    def acceptance_rate(self) -> float:
        total = self.feedback_accepted + self.feedback_rejected
        if not total:
            return 0.0
        return round(self.feedback_accepted / total, 3)


class AutoFillClassifier:
    """
    Partitions fields into auto-fill / suggest / must-ask buckets.

    The auto-fill bar comes from the context (callers may tighten it per
    session); the suggestion bar, the critical-field policy and the
    per-pass cap come from the configuration.
    """

    def __init__(
        self,
        aggregator: DefaultsAggregator,
        configuration: AutoFillConfiguration | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.configuration = configuration or AutoFillConfiguration.from_settings(
            settings or get_settings()
        )
        self._metrics = AutoFillMetrics()

    @property
    def metrics(self) -> AutoFillMetrics:
        return self._metrics

    def reset_metrics(self) -> None:
        self._metrics = AutoFillMetrics()

    async def classify(
        self,
        fields: Iterable[RequirementField],
        context: SmartDefaultContext,
    ) -> AutoFillResult:
        """Aggregate defaults for ``fields`` and bucket every one of them."""
        ordered = list(dict.fromkeys(fields))
        defaults = await self.aggregator.get_defaults(ordered, context)
        return self.classify_defaults(ordered, defaults, context.auto_fill_threshold)

    def classify_defaults(
        self,
        fields: list[RequirementField],
        defaults: dict[RequirementField, FieldDefault],
        auto_fill_threshold: float | None = None,
    ) -> AutoFillResult:
        """Bucket already-aggregated defaults. ``fields`` order is preserved for must-ask."""
        config = self.configuration
        threshold = (
            auto_fill_threshold if auto_fill_threshold is not None else config.auto_fill_threshold
        )

        eligible: list[RequirementField] = []
        suggested: dict[RequirementField, FieldDefault] = {}
        must_ask: list[RequirementField] = []
        critical_downgrades = 0

        for field in fields:
            default = defaults.get(field)
            if default is None or default.confidence < config.suggestion_threshold:
                must_ask.append(field)
            elif default.confidence >= threshold:
                if field in CRITICAL_FIELDS and not config.auto_fill_critical_fields:
                    suggested[field] = default
                    critical_downgrades += 1
                else:
                    eligible.append(field)
            else:
                suggested[field] = default

        # Highest confidence keeps the slot; sorted() is stable so ties keep input order
        by_confidence = sorted(eligible, key=lambda f: -defaults[f].confidence)
        cap = max(config.max_auto_fill_fields, 0)
        kept = set(by_confidence[:cap])
        overflow = by_confidence[cap:]
        for field in overflow:
            suggested[field] = defaults[field]

        auto_filled: dict[RequirementField, ResponseValue] = {
            field: defaults[field].value for field in eligible if field in kept
        }
        # Suggested in input order regardless of how a field got there
        suggested = {field: suggested[field] for field in fields if field in suggested}

        result = AutoFillResult(
            auto_filled_fields=auto_filled,
            suggested_fields=suggested,
            must_ask_fields=must_ask,
            confidences={f: d.confidence for f, d in defaults.items() if f in fields},
            summary=AutoFillSummary(
                total_fields=len(fields),
                auto_filled_count=len(auto_filled),
                suggested_count=len(suggested),
                must_ask_count=len(must_ask),
            ),
        )

        self._record(result, critical_downgrades, len(overflow))
        logger.info(
            "fields_classified",
            total=len(fields),
            auto_filled=len(auto_filled),
            suggested=len(suggested),
            must_ask=len(must_ask),
            critical_downgrades=critical_downgrades,
            cap_downgrades=len(overflow),
        )
        return result

    async def record_feedback(
        self,
        field: RequirementField,
        auto_filled_value: ResponseValue,
        user_value: ResponseValue,
        was_accepted: bool,
        context: SmartDefaultContext,
    ) -> None:
        """Count whether an auto-filled value survived review and teach the model."""
        if was_accepted:
            self._metrics.feedback_accepted += 1
        else:
            self._metrics.feedback_rejected += 1

        await self.aggregator.learn(UserInteraction(
            session_id=context.session_id,
            field=field,
            suggested_value=auto_filled_value,
            accepted_suggestion=was_accepted,
            final_value=user_value,
            time_to_respond=context.response_time or 0.0,
            document_context=bool(context.extracted_data),
        ))

        logger.info(
            "auto_fill_feedback",
            field=field.value,
            accepted=was_accepted,
            acceptance_rate=self._metrics.acceptance_rate,
        )

    def _record(self, result: AutoFillResult, critical_downgrades: int, cap_downgrades: int) -> None:
        m = self._metrics
        m.total_classifications += 1
        m.total_fields += result.summary.total_fields
        m.auto_filled += result.summary.auto_filled_count
        m.suggested += result.summary.suggested_count
        m.must_ask += result.summary.must_ask_count
        m.critical_downgrades += critical_downgrades
        m.cap_downgrades += cap_downgrades
