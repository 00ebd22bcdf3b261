"""Strict one-at-a-time analysis strategy."""

from __future__ import annotations

from typing import Sequence

from enrichment.core.cancellation import CancellationToken
from enrichment.services.aggregator import PostAggregator
from enrichment.services.analyzer import BaseAnalyzer, IndexedItem


class SequentialAnalyzer(BaseAnalyzer):
    """Analyse items in input order, one provider call at a time.

    Output post order matches first-seen post order, and a failing item is
    skipped without affecting the rest of the run.
    """

    strategy = "sequential"

    async def _run(
        self,
        items: Sequence[IndexedItem],
        aggregator: PostAggregator,
        token: CancellationToken,
    ) -> None:
        for index, item in items:
            token.raise_if_cancelled()
            self._log.debug("Analyzing image %s from post %s", item.image_path, item.post_id)
            outcome = await self._analyze_one(index, item)
            self._record(outcome, aggregator)


__all__ = ["SequentialAnalyzer"]
