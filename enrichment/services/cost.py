"""
Cost accounting for provider token usage.

``compute_cost`` is pure; ``CostLedger`` accumulates totals for one analyzer
instance behind a lock so concurrent completions can record safely.
"""

from __future__ import annotations

import threading
from typing import Optional

from enrichment.schemas import CostSummary, PricingTable, TokenUsage

_TOKENS_PER_RATE_UNIT = 1000


def compute_cost(
    prompt_tokens: int,
    completion_tokens: int,
    pricing: PricingTable,
) -> float:
    """Return the cost of one call; rates are per 1000 tokens."""
    return (prompt_tokens * pricing.input_rate / _TOKENS_PER_RATE_UNIT) + (
        completion_tokens * pricing.output_rate / _TOKENS_PER_RATE_UNIT
    )


def estimate_run_cost(
    image_count: int,
    *,
    prompt_tokens: int,
    completion_tokens: int,
    pricing: PricingTable,
) -> float:
    """Project the cost of analysing ``image_count`` images."""
    return compute_cost(prompt_tokens, completion_tokens, pricing) * image_count


class CostLedger:
    """Running cost totals; values only ever grow until ``reset()``."""

    def __init__(
        self,
        pricing: PricingTable,
        *,
        standard_pricing: Optional[PricingTable] = None,
    ) -> None:
        self._pricing = pricing
        self._standard = standard_pricing or pricing
        self._lock = threading.Lock()
        self._processed = 0
        self._tokens = 0
        self._cost = 0.0
        self._standard_cost = 0.0

    @property
    def pricing(self) -> PricingTable:
        return self._pricing

    def record(self, usage: TokenUsage) -> float:
        """Add one processed image and return its cost."""
        cost = compute_cost(usage.prompt_tokens, usage.completion_tokens, self._pricing)
        standard_cost = compute_cost(
            usage.prompt_tokens, usage.completion_tokens, self._standard
        )
        total_tokens = usage.total_tokens or (
            usage.prompt_tokens + usage.completion_tokens
        )
        with self._lock:
            self._processed += 1
            self._tokens += total_tokens
            self._cost += cost
            self._standard_cost += standard_cost
        return cost

    def snapshot(self) -> CostSummary:
        with self._lock:
            processed = self._processed
            tokens = self._tokens
            cost = self._cost
            standard_cost = self._standard_cost
        return CostSummary(
            processed_count=processed,
            total_cost=cost,
            total_tokens=tokens,
            average_cost_per_image=cost / processed if processed else 0.0,
            average_tokens_per_image=tokens / processed if processed else 0.0,
            standard_cost_equivalent=standard_cost,
            savings=max(standard_cost - cost, 0.0),
        )

    def reset(self) -> None:
        with self._lock:
            self._processed = 0
            self._tokens = 0
            self._cost = 0.0
            self._standard_cost = 0.0


__all__ = ["CostLedger", "compute_cost", "estimate_run_cost"]
