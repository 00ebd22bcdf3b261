"""Bounded-concurrency analysis strategy."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Sequence

from enrichment.clients import InferenceClient
from enrichment.core.cancellation import CancellationToken
from enrichment.schemas import AnalysisItem, PricingTable, PromptVariant
from enrichment.services.aggregator import PostAggregator
from enrichment.services.analyzer import BaseAnalyzer, IndexedItem
from enrichment.services.task_encoder import TaskEncoder


class ConcurrentAnalyzer(BaseAnalyzer):
    """Analyse items in waves of at most ``concurrency`` parallel calls.

    Each wave waits for every call to settle; a failing call never cancels
    its siblings. Results are aggregated as they complete, so post order is
    not stable across runs.
    """

    strategy = "concurrent"

    def __init__(
        self,
        inference_client: InferenceClient,
        encoder: TaskEncoder,
        *,
        pricing: PricingTable,
        standard_pricing: Optional[PricingTable] = None,
        variant: PromptVariant = PromptVariant.FASHION_ATTRIBUTES,
        concurrency: int = 10,
        inter_batch_delay_ms: int = 100,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if inter_batch_delay_ms < 0:
            raise ValueError("inter_batch_delay_ms must not be negative")
        super().__init__(
            inference_client,
            encoder,
            pricing=pricing,
            standard_pricing=standard_pricing,
            variant=variant,
            logger=logger,
        )
        self._concurrency = concurrency
        self._delay_seconds = inter_batch_delay_ms / 1000

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def _run(
        self,
        items: Sequence[IndexedItem],
        aggregator: PostAggregator,
        token: CancellationToken,
    ) -> None:
        wave_count = math.ceil(len(items) / self._concurrency)
        for wave, start in enumerate(range(0, len(items), self._concurrency), start=1):
            token.raise_if_cancelled()
            chunk = items[start : start + self._concurrency]
            self._log.info(
                "Processing batch %d/%d (%d images)", wave, wave_count, len(chunk)
            )
            await asyncio.gather(
                *(
                    self._analyze_and_record(index, item, aggregator)
                    for index, item in chunk
                )
            )
            if wave < wave_count:
                await token.sleep(self._delay_seconds)

        summary = self._ledger.snapshot()
        self._log.info(
            "Progress: %d images processed, $%.4f spent",
            summary.processed_count,
            summary.total_cost,
        )

    async def _analyze_and_record(
        self,
        index: int,
        item: AnalysisItem,
        aggregator: PostAggregator,
    ) -> None:
        outcome = await self._analyze_one(index, item)
        self._record(outcome, aggregator)


__all__ = ["ConcurrentAnalyzer"]
