"""
Defaults Aggregator.

Queries every configured default source for a field concurrently,
merges the candidates into one FieldDefault by priority and confidence,
boosts confidence when sources agree, and caches the result for a few
minutes so repeated questions about the same field are free.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Optional

from smart_intake.config import Settings, get_settings
from smart_intake.logging_config import get_logger
from smart_intake.schemas.defaults import FieldDefault, SmartDefaultContext, UserInteraction
from smart_intake.schemas.fields import (
    CRITICAL_FIELDS,
    HIGH_PRIORITY_FIELDS,
    RequirementField,
    field_for_key,
)
from smart_intake.schemas.values import ResponseValue, value_from_text
from smart_intake.services.default_cache import DefaultsCache
from smart_intake.services.providers import (
    DefaultProvider,
    DocumentContextProvider,
    PatternLearningProvider,
)

logger = get_logger(__name__)

# Lower wins
PRIORITY_DOCUMENT = 0
PRIORITY_SEQUENCE_PATTERN = 0
PRIORITY_TIME_AWARE_PATTERN = 1
PRIORITY_CONTEXTUAL = 1
PRIORITY_STANDARD_PATTERN = 2
PRIORITY_STATIC_RULES = 3


class CandidateSource(str, Enum):
    DOCUMENT = "document"
    PATTERN_LEARNING = "pattern_learning"
    CONTEXTUAL = "contextual"
    RULES = "rules"


@dataclass(frozen=True)
class DefaultCandidate:
    """One source's proposal for a field, before merging."""
    default: FieldDefault
    priority: int
    source_kind: CandidateSource


@dataclass(frozen=True)
class _SourceCall:
    name: str
    priority: int
    source_kind: CandidateSource
    call: Callable[[], Awaitable[Optional[FieldDefault]]]


def prioritize_fields(fields: Iterable[RequirementField]) -> list[RequirementField]:
    """Critical fields first, then high-priority ones, then the rest by name."""

    def rank(field: RequirementField) -> tuple[int, str]:
        if field in CRITICAL_FIELDS:
            return (0, field.value)
        if field in HIGH_PRIORITY_FIELDS:
            return (1, field.value)
        return (2, field.value)

    return sorted(dict.fromkeys(fields), key=rank)


class DefaultsAggregator:
    """
    Merges evidence from every default source into one value per field.

    Sources are injected; any of them may be missing, in which case the
    field simply gets fewer candidates. With nothing configured every
    lookup returns None and every field has to be asked.
    """

    def __init__(
        self,
        document_provider: DefaultProvider | None = None,
        learning_provider: PatternLearningProvider | None = None,
        contextual_provider: DefaultProvider | None = None,
        rules_provider: DefaultProvider | None = None,
        settings: Settings | None = None,
        cache: DefaultsCache | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.document_provider = document_provider
        self.learning_provider = learning_provider
        self.contextual_provider = contextual_provider
        self.rules_provider = rules_provider
        self.cache = cache or DefaultsCache(ttl_seconds=self.settings.cache_ttl_seconds)

    @classmethod
    def create(
        cls,
        learning_provider: PatternLearningProvider | None = None,
        contextual_provider: DefaultProvider | None = None,
        rules_provider: DefaultProvider | None = None,
        settings: Settings | None = None,
    ) -> DefaultsAggregator:
        """Build an aggregator that also reads the extracted-document map."""
        settings = settings or get_settings()
        return cls(
            document_provider=DocumentContextProvider(settings.document_context_confidence),
            learning_provider=learning_provider,
            contextual_provider=contextual_provider,
            rules_provider=rules_provider,
            settings=settings,
        )

    # -- Single field --

    async def get_default(
        self,
        field: RequirementField,
        context: SmartDefaultContext,
    ) -> FieldDefault | None:
        """Best default for ``field``, served from cache while it is fresh."""
        cached = await self.cache.get(field)
        if cached is not None:
            logger.debug("default_cache_hit", field=field.value)
            return cached

        candidates = await self._gather_candidates(field, context)
        best = self.select_best_default(candidates)

        if best is not None:
            await self.cache.set(field, best)

        logger.info(
            "defaults_aggregated",
            field=field.value,
            candidates=len(candidates),
            confidence=best.confidence if best else None,
            source=best.source.value if best else None,
        )
        return best

    def select_best_default(self, candidates: list[DefaultCandidate]) -> FieldDefault | None:
        """
        Rank by (priority asc, confidence desc) and apply the agreement boost.

        Ties keep source declaration order, so the result depends only on
        the finished candidate set and never on arrival order.
        """
        if not candidates:
            return None

        ranked = sorted(candidates, key=lambda c: (c.priority, -c.default.confidence))
        best = ranked[0].default

        if best.confidence < self.settings.min_confidence_threshold:
            return None

        agreeing = sum(1 for c in candidates if c.default.value == best.value)
        if agreeing > 1:
            return FieldDefault(
                value=best.value,
                confidence=min(best.confidence * self.settings.agreement_boost, 1.0),
                source=best.source,
            )
        return best

    # -- Batch --

    async def iter_defaults(
        self,
        fields: Iterable[RequirementField],
        context: SmartDefaultContext,
    ) -> AsyncIterator[tuple[RequirementField, FieldDefault | None]]:
        """
        Aggregate many fields at once, yielding each as soon as it is ready.

        One task per field; a slow field never holds back faster ones.
        Closing the iterator early cancels whatever is still running.
        """
        tasks = [
            asyncio.ensure_future(self._field_result(field, context))
            for field in prioritize_fields(fields)
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def get_defaults(
        self,
        fields: Iterable[RequirementField],
        context: SmartDefaultContext,
    ) -> dict[RequirementField, FieldDefault]:
        """Defaults for every field that has one. Completion order is unspecified."""
        defaults: dict[RequirementField, FieldDefault] = {}
        async for field, default in self.iter_defaults(fields, context):
            if default is not None:
                defaults[field] = default
        return defaults

    async def get_auto_fill_candidates(
        self,
        fields: Iterable[RequirementField],
        context: SmartDefaultContext,
    ) -> list[RequirementField]:
        """Fields whose merged confidence clears the context's auto-fill bar."""
        defaults = await self.get_defaults(fields, context)
        return [
            field for field, default in defaults.items()
            if default.confidence >= context.auto_fill_threshold
        ]

    # -- Learning & cache --

    async def learn(self, interaction: UserInteraction) -> None:
        """Report an outcome to the learning provider and drop the stale default."""
        try:
            if self.learning_provider is not None:
                await asyncio.wait_for(
                    self.learning_provider.learn(interaction),
                    timeout=self.settings.learning_timeout_seconds,
                )
        except asyncio.TimeoutError:
            logger.warning(
                "learning_timeout",
                field=interaction.field.value,
                timeout=self.settings.learning_timeout_seconds,
            )
        except Exception as e:
            logger.warning("learning_submit_failed", field=interaction.field.value, error=str(e))
        finally:
            await self.cache.invalidate(interaction.field)

    async def invalidate(self, field: RequirementField) -> None:
        await self.cache.invalidate(field)

    async def clear_cache(self) -> None:
        await self.cache.clear()

    # -- Private helpers --

    async def _field_result(
        self, field: RequirementField, context: SmartDefaultContext
    ) -> tuple[RequirementField, FieldDefault | None]:
        return field, await self.get_default(field, context)

    async def _gather_candidates(
        self,
        field: RequirementField,
        context: SmartDefaultContext,
    ) -> list[DefaultCandidate]:
        calls = self._source_calls(field, context)
        results = await asyncio.gather(*(self._call_source(field, sc) for sc in calls))
        return [
            DefaultCandidate(default=result, priority=sc.priority, source_kind=sc.source_kind)
            for sc, result in zip(calls, results)
            if result is not None
        ]

    def _source_calls(
        self, field: RequirementField, context: SmartDefaultContext
    ) -> list[_SourceCall]:
        calls: list[_SourceCall] = []

        if self.document_provider is not None:
            calls.append(_SourceCall(
                "document", PRIORITY_DOCUMENT, CandidateSource.DOCUMENT,
                partial(self.document_provider.get_default, field, context),
            ))

        if self.learning_provider is not None:
            learner = self.learning_provider
            calls.append(_SourceCall(
                "pattern_sequence", PRIORITY_SEQUENCE_PATTERN, CandidateSource.PATTERN_LEARNING,
                partial(learner.predict_sequence, field, _prior_fields(field, context)),
            ))
            calls.append(_SourceCall(
                "pattern_time_aware", PRIORITY_TIME_AWARE_PATTERN, CandidateSource.PATTERN_LEARNING,
                partial(learner.predict_time_aware, field),
            ))

        if self.contextual_provider is not None:
            calls.append(_SourceCall(
                "contextual", PRIORITY_CONTEXTUAL, CandidateSource.CONTEXTUAL,
                partial(self.contextual_provider.get_default, field, context),
            ))

        if self.learning_provider is not None:
            calls.append(_SourceCall(
                "pattern_standard", PRIORITY_STANDARD_PATTERN, CandidateSource.PATTERN_LEARNING,
                partial(self.learning_provider.predict, field),
            ))

        if self.rules_provider is not None:
            calls.append(_SourceCall(
                "static_rules", PRIORITY_STATIC_RULES, CandidateSource.RULES,
                partial(self.rules_provider.get_default, field, context),
            ))

        return calls

    async def _call_source(
        self, field: RequirementField, source: _SourceCall
    ) -> FieldDefault | None:
        """A failing or slow source counts as "no candidate", never as an error."""
        try:
            return await asyncio.wait_for(source.call(), timeout=self.settings.provider_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "provider_timeout",
                provider=source.name,
                field=field.value,
                timeout=self.settings.provider_timeout_seconds,
            )
        except Exception as e:
            logger.warning("provider_error", provider=source.name, field=field.value, error=str(e))
        return None


def _prior_fields(
    field: RequirementField, context: SmartDefaultContext
) -> dict[RequirementField, ResponseValue]:
    """Fields already known from documents, used as sequence-prediction input."""
    prior: dict[RequirementField, ResponseValue] = {}
    for key, raw in context.extracted_data.items():
        known = field_for_key(key)
        if known is None or known == field or known in prior or not raw.strip():
            continue
        prior[known] = value_from_text(known, raw)
    return prior
