"""
Pydantic models for analysis inputs, provider tasks, batch jobs and outputs.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from enrichment.schemas.analysis import AnalysisResult, PromptVariant


class AnalysisItem(BaseModel):
    """One image handed to the orchestrator by the content producer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    post_id: str = Field(..., alias="postId", min_length=1)
    image_path: str = Field(
        ...,
        alias="imagePath",
        min_length=1,
        description="Local path, data URI or http(s) URL of the image.",
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def username(self) -> Optional[str]:
        value = self.metadata.get("username")
        return str(value) if value else None


class AnalysisTask(BaseModel):
    """A provider-ready request correlated to its originating item."""

    model_config = ConfigDict(frozen=True)

    custom_id: str
    item: AnalysisItem
    variant: PromptVariant
    request: Dict[str, Any] = Field(
        ..., description="Request line: custom_id, method, url and body."
    )

    @property
    def body(self) -> Dict[str, Any]:
        return self.request["body"]


class BatchJobStatus(str, Enum):
    """Lifecycle of a provider-side batch job, in order."""

    VALIDATING = "validating"
    IN_PROGRESS = "in_progress"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchJobStatus.COMPLETED, BatchJobStatus.FAILED)

    @property
    def rank(self) -> int:
        # Both terminal states share the last rank.
        return min(_STATUS_ORDER.index(self), _STATUS_ORDER.index(BatchJobStatus.COMPLETED))

    def can_advance_to(self, other: "BatchJobStatus") -> bool:
        """Whether ``other`` is the same state or one later in the lifecycle."""
        if self.is_terminal:
            return other == self
        return other.rank >= self.rank


_STATUS_ORDER = list(BatchJobStatus)


class BatchRequestCounts(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0


class BatchJob(BaseModel):
    """Client-side view of a provider batch job."""

    job_id: str
    status: BatchJobStatus
    input_file_id: str
    output_file_id: Optional[str] = None
    error_file_id: Optional[str] = None
    created_at: Optional[datetime] = None
    counts: BatchRequestCounts = Field(default_factory=BatchRequestCounts)
    errors: List[str] = Field(default_factory=list)


class PostAggregate(BaseModel):
    """All analysed images of one social post, in arrival order."""

    post_id: str
    username: str
    image_paths: List[str] = Field(default_factory=list)
    analyses: List[AnalysisResult] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _paths_match_analyses(self) -> "PostAggregate":
        if len(self.image_paths) != len(self.analyses):
            raise ValueError(
                "image_paths and analyses must have the same length "
                f"({len(self.image_paths)} != {len(self.analyses)})"
            )
        return self


__all__ = [
    "AnalysisItem",
    "AnalysisTask",
    "BatchJob",
    "BatchJobStatus",
    "BatchRequestCounts",
    "PostAggregate",
]
