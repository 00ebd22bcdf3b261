"""
Exception hierarchy shared by the analysis strategies.

Item-level errors (``ItemError``) are captured per task and only cause that
item to be skipped. Run-level errors (``RunAborted``) propagate out of
``process()`` and abort the whole run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from enrichment.schemas.items import BatchJob


class AnalysisError(RuntimeError):
    """Base class for every orchestrator error."""


class ItemError(AnalysisError):
    """A failure scoped to a single image; the run continues without it."""

    def __init__(self, message: str, *, post_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.post_id = post_id


class ItemInvalid(ItemError):
    """Raised when an item misses a required field."""


class ItemUnreadable(ItemError):
    """Raised when an image cannot be read, fetched or inlined."""


class ProviderCallError(ItemError):
    """Raised when the inference provider rejects or fails a single request."""


class ResponseParseError(ItemError):
    """Raised when the model output is not JSON of the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        raw: str = "",
        post_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, post_id=post_id)
        self.raw = raw


class RunAborted(AnalysisError):
    """A failure that aborts the whole run; no aggregates are returned."""


class BatchSubmitError(RunAborted):
    """Raised when the task file cannot be uploaded or the job not created."""


class BatchJobFailed(RunAborted):
    """Raised when the provider reports a terminal failure for the job."""

    def __init__(self, reason: str, *, job: Optional["BatchJob"] = None) -> None:
        super().__init__(f"Batch job failed: {reason}")
        self.reason = reason
        self.job = job


class BatchTimeout(RunAborted):
    """Raised when a batch job does not finish within the polling ceiling."""

    def __init__(self, job_id: str, elapsed_seconds: float) -> None:
        super().__init__(
            f"Batch job {job_id} did not finish after {elapsed_seconds:.0f}s"
        )
        self.job_id = job_id
        self.elapsed_seconds = elapsed_seconds


class BatchPollError(RunAborted):
    """Raised when the job status can no longer be retrieved from the provider."""


class AnalysisCancelled(RunAborted):
    """Raised when a caller cancels a run through its cancellation token."""


__all__ = [
    "AnalysisCancelled",
    "AnalysisError",
    "BatchJobFailed",
    "BatchPollError",
    "BatchSubmitError",
    "BatchTimeout",
    "ItemError",
    "ItemInvalid",
    "ItemUnreadable",
    "ProviderCallError",
    "ResponseParseError",
    "RunAborted",
]
