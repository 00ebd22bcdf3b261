"""Public schema exports."""

from .analysis import (
    AnalysisResult,
    BackgroundColor,
    FashionAttributes,
    HookSlide,
    PromptVariant,
)
from .cost import CostSummary, PricingTable, TokenUsage
from .items import (
    AnalysisItem,
    AnalysisTask,
    BatchJob,
    BatchJobStatus,
    BatchRequestCounts,
    PostAggregate,
)
from .provider import CompletionResponse

__all__ = [
    "AnalysisItem",
    "AnalysisResult",
    "AnalysisTask",
    "BackgroundColor",
    "BatchJob",
    "BatchJobStatus",
    "BatchRequestCounts",
    "CompletionResponse",
    "CostSummary",
    "FashionAttributes",
    "HookSlide",
    "PricingTable",
    "PostAggregate",
    "PromptVariant",
    "TokenUsage",
]
