"""Client wrapper for the OpenAI-compatible vision inference provider."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from enrichment.core.config import InferenceSettings
from enrichment.core.errors import BatchPollError, BatchSubmitError, ProviderCallError
from enrichment.schemas import (
    BatchJob,
    BatchJobStatus,
    BatchRequestCounts,
    CompletionResponse,
)

logger = logging.getLogger(__name__)

# Provider statuses outside the client-side lifecycle fold into it here.
_STATUS_MAP: Dict[str, BatchJobStatus] = {
    "validating": BatchJobStatus.VALIDATING,
    "in_progress": BatchJobStatus.IN_PROGRESS,
    "finalizing": BatchJobStatus.FINALIZING,
    "cancelling": BatchJobStatus.FINALIZING,
    "completed": BatchJobStatus.COMPLETED,
    "failed": BatchJobStatus.FAILED,
    "expired": BatchJobStatus.FAILED,
    "cancelled": BatchJobStatus.FAILED,
}


class InferenceClient:
    """Single-call and batch-job access to the inference provider."""

    def __init__(
        self,
        settings: InferenceSettings,
        *,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
        )

    @property
    def model(self) -> str:
        return self._settings.model

    async def complete(self, body: Dict[str, Any]) -> CompletionResponse:
        """Run one chat completion request and normalize the response."""
        try:
            response = await self._client.chat.completions.create(**body)
        except openai.APIError as exc:
            raise ProviderCallError(f"Chat completion failed: {exc}") from exc
        return CompletionResponse.from_body(response.model_dump())

    async def upload_batch_file(self, *, filename: str, content: bytes) -> str:
        """Upload a JSONL task file and return its provider file id."""
        try:
            uploaded = await self._client.files.create(
                file=(filename, content), purpose="batch"
            )
        except openai.APIError as exc:
            raise BatchSubmitError(f"Uploading {filename} failed: {exc}") from exc
        logger.info("Uploaded batch file %s as %s", filename, uploaded.id)
        return uploaded.id

    async def create_batch_job(
        self,
        *,
        input_file_id: str,
        endpoint: str,
        completion_window: str,
    ) -> BatchJob:
        try:
            batch = await self._client.batches.create(
                input_file_id=input_file_id,
                endpoint=endpoint,
                completion_window=completion_window,
            )
        except openai.APIError as exc:
            raise BatchSubmitError(f"Creating batch job failed: {exc}") from exc
        return _to_batch_job(batch)

    async def retrieve_batch_job(self, job_id: str) -> BatchJob:
        try:
            batch = await self._client.batches.retrieve(job_id)
        except openai.APIError as exc:
            raise BatchPollError(f"Retrieving batch job {job_id} failed: {exc}") from exc
        return _to_batch_job(batch)

    async def cancel_batch_job(self, job_id: str) -> BatchJob:
        try:
            batch = await self._client.batches.cancel(job_id)
        except openai.APIError as exc:
            raise BatchPollError(f"Cancelling batch job {job_id} failed: {exc}") from exc
        return _to_batch_job(batch)

    async def download_file(self, file_id: str) -> str:
        """Return the text content of a provider file (batch output)."""
        try:
            content = await self._client.files.content(file_id)
        except openai.APIError as exc:
            raise BatchPollError(f"Downloading file {file_id} failed: {exc}") from exc
        return content.text


def _to_batch_job(batch: Any) -> BatchJob:
    """Convert the SDK batch object into the client-side ``BatchJob``."""
    raw_status = str(batch.status)
    status = _STATUS_MAP.get(raw_status)
    errors = _collect_errors(batch)
    if status is None:
        status = BatchJobStatus.FAILED
        errors.append(f"unexpected batch status '{raw_status}'")
    elif raw_status in ("expired", "cancelled"):
        errors.append(f"batch {raw_status}")

    counts = getattr(batch, "request_counts", None)
    created_at = getattr(batch, "created_at", None)
    return BatchJob(
        job_id=batch.id,
        status=status,
        input_file_id=batch.input_file_id,
        output_file_id=getattr(batch, "output_file_id", None),
        error_file_id=getattr(batch, "error_file_id", None),
        created_at=(
            datetime.fromtimestamp(created_at, tz=timezone.utc)
            if isinstance(created_at, (int, float))
            else None
        ),
        counts=BatchRequestCounts(
            total=getattr(counts, "total", 0) or 0,
            completed=getattr(counts, "completed", 0) or 0,
            failed=getattr(counts, "failed", 0) or 0,
        ),
        errors=errors,
    )


def _collect_errors(batch: Any) -> list[str]:
    errors = getattr(batch, "errors", None)
    data = getattr(errors, "data", None) or []
    return [getattr(entry, "message", None) or str(entry) for entry in data]


__all__ = ["InferenceClient"]
