"""
Shared contract for the analysis strategies.

Every strategy turns a list of items into ``PostAggregate``s and keeps its own
cost ledger. Item-level failures are captured as ``TaskOutcome``s and logged;
only run-level errors propagate out of ``process()``.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, ClassVar, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from enrichment.clients import InferenceClient
from enrichment.core.cancellation import CancellationToken
from enrichment.core.errors import ItemError, ItemInvalid, ResponseParseError
from enrichment.schemas import (
    AnalysisItem,
    BackgroundColor,
    CostSummary,
    HookSlide,
    PostAggregate,
    PricingTable,
    PromptVariant,
    TokenUsage,
)
from enrichment.services.aggregator import PostAggregator
from enrichment.services.cost import CostLedger
from enrichment.services.reconciler import TaskOutcome, parse_completion
from enrichment.services.task_encoder import TaskEncoder

IndexedItem = Tuple[int, AnalysisItem]
RawItem = Union[AnalysisItem, Mapping[str, Any]]

_HOOK_CONFIDENCE_THRESHOLD = 0.7
_UNIFORM_BACKGROUND_THRESHOLD = 0.8
_HIGH_QUALITY_BACKGROUND_THRESHOLD = 0.7
_TOP_COLOR_COUNT = 5


class FindingsTally:
    """Per-variant counts reported next to the cost totals."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hook_slides = 0
        self._high_quality_backgrounds = 0
        self._colors: Counter[str] = Counter()

    def record(self, result: object) -> None:
        with self._lock:
            if isinstance(result, HookSlide) and result.is_confident(_HOOK_CONFIDENCE_THRESHOLD):
                self._hook_slides += 1
            elif isinstance(result, BackgroundColor):
                self._colors[result.primary_color] += 1
                if (
                    result.suitable_for_matching
                    and result.uniformity > _HIGH_QUALITY_BACKGROUND_THRESHOLD
                ):
                    self._high_quality_backgrounds += 1

    def apply(self, summary: CostSummary) -> CostSummary:
        processed = summary.processed_count
        with self._lock:
            hook_slides = self._hook_slides
            high_quality = self._high_quality_backgrounds
            top_colors = self._colors.most_common(_TOP_COLOR_COUNT)
        return summary.model_copy(
            update={
                "hook_slides_found": hook_slides,
                "discovery_rate": hook_slides / processed if processed else 0.0,
                "high_quality_backgrounds": high_quality,
                "high_quality_rate": high_quality / processed if processed else 0.0,
                "top_background_colors": top_colors,
            }
        )

    def reset(self) -> None:
        with self._lock:
            self._hook_slides = 0
            self._high_quality_backgrounds = 0
            self._colors.clear()


class BaseAnalyzer(ABC):
    """Template for the sequential, concurrent and batch strategies."""

    strategy: ClassVar[str] = "base"
    progress_interval: ClassVar[int] = 50

    def __init__(
        self,
        inference_client: InferenceClient,
        encoder: TaskEncoder,
        *,
        pricing: PricingTable,
        standard_pricing: Optional[PricingTable] = None,
        variant: PromptVariant = PromptVariant.FASHION_ATTRIBUTES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = inference_client
        self._encoder = encoder
        self._variant = variant
        self._log = logger or logging.getLogger(type(self).__module__)
        self._ledger = CostLedger(pricing, standard_pricing=standard_pricing)
        self._findings = FindingsTally()

    @property
    def variant(self) -> PromptVariant:
        return self._variant

    @property
    def pricing(self) -> PricingTable:
        return self._ledger.pricing

    async def process(
        self,
        items: Iterable[RawItem],
        *,
        cancellation: Optional[CancellationToken] = None,
    ) -> List[PostAggregate]:
        """Analyse ``items`` and return one aggregate per post."""
        token = cancellation or CancellationToken()
        valid = self._validate_items(items)
        self._log.info(
            "Starting %s %s analysis of %d images",
            self.strategy,
            self._variant.value,
            len(valid),
        )
        aggregator = PostAggregator(logger=self._log)
        await self._run(valid, aggregator, token)
        posts = aggregator.posts()
        self._log_summary(len(posts))
        return posts

    @abstractmethod
    async def _run(
        self,
        items: Sequence[IndexedItem],
        aggregator: PostAggregator,
        token: CancellationToken,
    ) -> None:
        """Analyse ``items`` and feed successful results into ``aggregator``."""

    def get_cost_summary(self) -> CostSummary:
        return self._findings.apply(self._ledger.snapshot())

    def reset(self) -> None:
        """Clear the cost ledger and findings before reusing the analyzer."""
        self._ledger.reset()
        self._findings.reset()

    def _validate_items(self, items: Iterable[RawItem]) -> List[IndexedItem]:
        valid: List[IndexedItem] = []
        for index, raw in enumerate(items):
            if isinstance(raw, AnalysisItem):
                valid.append((index, raw))
                continue
            try:
                valid.append((index, AnalysisItem.model_validate(raw)))
            except ValidationError as exc:
                error = ItemInvalid(
                    f"Skipping invalid image item {index}: missing postId or imagePath "
                    f"({exc.error_count()} error(s))"
                )
                self._log.error(str(error))
        return valid

    async def _analyze_one(self, index: int, item: AnalysisItem) -> TaskOutcome:
        """Encode, call and parse one item without raising item-level errors."""
        try:
            task = await self._encoder.encode(item, self._variant, index)
        except ItemError as exc:
            exc.post_id = exc.post_id or item.post_id
            return TaskOutcome.failure(exc, item=item)
        try:
            response = await self._client.complete(task.body)
        except ItemError as exc:
            exc.post_id = exc.post_id or item.post_id
            return TaskOutcome.failure(exc, item=item, custom_id=task.custom_id)
        return parse_completion(task, response)

    def _record(self, outcome: TaskOutcome, aggregator: PostAggregator) -> bool:
        """Account for a finished outcome; returns whether it was aggregated."""
        if not outcome.ok or outcome.item is None or outcome.result is None:
            self._log_failure(outcome)
            return False

        self._ledger.record(outcome.usage or TokenUsage())
        self._findings.record(outcome.result)
        self._log_notable(outcome)
        added = aggregator.add(outcome.item, outcome.result)

        summary = self._ledger.snapshot()
        if summary.processed_count % self.progress_interval == 0:
            self._log.info(
                "Cost tracking: %d images processed, $%.4f spent, %d tokens used",
                summary.processed_count,
                summary.total_cost,
                summary.total_tokens,
            )
        return added

    def _log_failure(self, outcome: TaskOutcome) -> None:
        error = outcome.error
        post_id = outcome.item.post_id if outcome.item else None
        if isinstance(error, ResponseParseError):
            self._log.error(
                "Analysis failed for %s: %s | raw payload: %s",
                post_id,
                error,
                error.raw[:500],
            )
        else:
            self._log.error("Analysis failed for %s: %s", post_id, error)

    def _log_notable(self, outcome: TaskOutcome) -> None:
        result = outcome.result
        if isinstance(result, HookSlide) and result.is_confident(_HOOK_CONFIDENCE_THRESHOLD):
            self._log.info(
                "Hook slide found in %s: %r - theme %s (%.1f%% confidence)",
                outcome.custom_id,
                result.text,
                result.theme,
                result.confidence * 100,
            )
        elif (
            isinstance(result, BackgroundColor)
            and result.suitable_for_matching
            and result.uniformity > _UNIFORM_BACKGROUND_THRESHOLD
        ):
            self._log.info(
                "Uniform background in %s: %s (%.0f%% uniform)",
                outcome.custom_id,
                result.primary_color,
                result.uniformity * 100,
            )

    def _log_summary(self, post_count: int) -> None:
        summary = self.get_cost_summary()
        self._log.info(
            "%s analysis complete: %d images processed into %d posts",
            self.strategy.capitalize(),
            summary.processed_count,
            post_count,
        )
        self._log.info(
            "Total cost: $%.4f (avg $%.6f per image), total tokens: %d (avg %.0f per image)",
            summary.total_cost,
            summary.average_cost_per_image,
            summary.total_tokens,
            summary.average_tokens_per_image,
        )
        if summary.savings > 0:
            self._log.info(
                "Standard pricing would cost $%.4f; saved $%.4f",
                summary.standard_cost_equivalent,
                summary.savings,
            )
        if self._variant is PromptVariant.HOOK_SLIDE:
            self._log.info(
                "Hook slides found: %d (discovery rate %.1f%%)",
                summary.hook_slides_found,
                summary.discovery_rate * 100,
            )
        elif self._variant is PromptVariant.BACKGROUND_COLOR:
            self._log.info(
                "High-quality backgrounds: %d (%.1f%%)",
                summary.high_quality_backgrounds,
                summary.high_quality_rate * 100,
            )
            for color, count in summary.top_background_colors:
                self._log.info("Background colour %s: %d images", color, count)


__all__ = ["BaseAnalyzer", "FindingsTally", "IndexedItem", "RawItem"]
