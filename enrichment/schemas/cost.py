"""
Pydantic models describing token usage, pricing and cost summaries.
"""

from __future__ import annotations

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TokenUsage(BaseModel):
    """Token counts reported by the provider for one completion."""

    prompt_tokens: int = Field(0, ge=0)
    completion_tokens: int = Field(0, ge=0)
    total_tokens: int = Field(0, ge=0)


class PricingTable(BaseModel):
    """Per-1000-token rates applied to prompt and completion tokens."""

    model_config = ConfigDict(frozen=True)

    name: str = Field("standard", description="Label used in log output.")
    input_rate: float = Field(..., ge=0, description="Cost per 1000 prompt tokens.")
    output_rate: float = Field(
        ..., ge=0, description="Cost per 1000 completion tokens."
    )

    def discounted(self, fraction: float, *, name: str = "batch") -> "PricingTable":
        """Return a copy with both rates multiplied by ``fraction``."""
        return PricingTable(
            name=name,
            input_rate=self.input_rate * fraction,
            output_rate=self.output_rate * fraction,
        )


class CostSummary(BaseModel):
    """Snapshot of an analyzer's running cost ledger."""

    processed_count: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    average_cost_per_image: float = 0.0
    average_tokens_per_image: float = 0.0
    standard_cost_equivalent: float = Field(
        0.0,
        description="What the same tokens would cost at standard rates.",
    )
    savings: float = 0.0
    hook_slides_found: int = Field(
        0, description="Confident hook slides seen by a hook_slide run."
    )
    discovery_rate: float = Field(
        0.0, description="hook_slides_found as a fraction of processed images."
    )
    high_quality_backgrounds: int = Field(
        0,
        description="Backgrounds suitable for matching with uniformity above 0.7.",
    )
    high_quality_rate: float = 0.0
    top_background_colors: List[Tuple[str, int]] = Field(
        default_factory=list,
        description="Up to five most common primary background colours with counts.",
    )


__all__ = ["CostSummary", "PricingTable", "TokenUsage"]
