"""
Asynchronous batch-job analysis strategy.

The run submits every task as one JSONL file, polls the provider-side job
until it reaches a terminal state and reconciles the downloaded output lines
back to their items by ``custom_id``. Batch pricing is discounted, at the cost
of latency of up to the provider's completion window.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from enrichment.clients import InferenceClient
from enrichment.core.cancellation import CancellationToken
from enrichment.core.errors import (
    AnalysisCancelled,
    BatchJobFailed,
    BatchPollError,
    BatchTimeout,
    ItemError,
)
from enrichment.schemas import (
    AnalysisTask,
    BatchJob,
    BatchJobStatus,
    PricingTable,
    PromptVariant,
)
from enrichment.services.aggregator import PostAggregator
from enrichment.services.analyzer import BaseAnalyzer, IndexedItem
from enrichment.services.reconciler import BatchReconciler
from enrichment.services.task_encoder import TaskEncoder

DEFAULT_POLL_INTERVAL_SECONDS = 30.0
DEFAULT_TIMEOUT_SECONDS = 24 * 60 * 60


class BatchAnalyzer(BaseAnalyzer):
    """Submit all items as one provider batch job and wait for its output."""

    strategy = "batch"
    progress_interval = 100

    def __init__(
        self,
        inference_client: InferenceClient,
        encoder: TaskEncoder,
        *,
        pricing: PricingTable,
        standard_pricing: Optional[PricingTable] = None,
        variant: PromptVariant = PromptVariant.FASHION_ATTRIBUTES,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        endpoint: str = "/v1/chat/completions",
        completion_window: str = "24h",
        work_dir: Optional[str | Path] = None,
        cancel_on_abandon: bool = True,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(
            inference_client,
            encoder,
            pricing=pricing,
            standard_pricing=standard_pricing,
            variant=variant,
            logger=logger,
        )
        self._poll_interval = poll_interval_seconds
        self._timeout = timeout_seconds
        self._endpoint = endpoint
        self._completion_window = completion_window
        self._work_dir = Path(work_dir) if work_dir else None
        self._cancel_on_abandon = cancel_on_abandon
        self._clock = clock
        self.last_job: Optional[BatchJob] = None

    async def _run(
        self,
        items: Sequence[IndexedItem],
        aggregator: PostAggregator,
        token: CancellationToken,
    ) -> None:
        tasks = await self._encode_all(items, token)
        if not tasks:
            self._log.warning("No encodable images; skipping batch submission")
            return

        reconciler = BatchReconciler(tasks, logger=self._log)
        job = await self.submit(tasks)
        job = await self.wait_for_completion(job, token)

        for outcome in reconciler.reconcile_output(await self._download_results(job)):
            self._record(outcome, aggregator)

        missing = reconciler.unmatched
        if missing:
            self._log.warning(
                "%d of %d submitted tasks have no result line in batch %s",
                len(missing),
                len(reconciler),
                job.job_id,
            )

    async def _encode_all(
        self,
        items: Sequence[IndexedItem],
        token: CancellationToken,
    ) -> List[AnalysisTask]:
        self._log.info("Creating batch tasks for %d images", len(items))
        tasks: List[AnalysisTask] = []
        for position, (index, item) in enumerate(items, start=1):
            token.raise_if_cancelled()
            try:
                tasks.append(await self._encoder.encode(item, self._variant, index))
            except ItemError as exc:
                self._log.error("Failed to encode image %s: %s", item.image_path, exc)
                continue
            if position % self.progress_interval == 0:
                self._log.info("Created %d/%d batch tasks", position, len(items))
        self._log.info("Created %d batch tasks", len(tasks))
        return tasks

    async def submit(self, tasks: Sequence[AnalysisTask]) -> BatchJob:
        """Upload the task file and create the provider job."""
        content = "\n".join(json.dumps(task.request) for task in tasks).encode("utf-8")
        filename = f"{self._variant.value}_batch_{_timestamp()}.jsonl"
        await self._write_artifact(filename, content)

        file_id = await self._client.upload_batch_file(filename=filename, content=content)
        job = await self._client.create_batch_job(
            input_file_id=file_id,
            endpoint=self._endpoint,
            completion_window=self._completion_window,
        )
        self.last_job = job
        self._log.info(
            "Batch job %s created with %d tasks (status: %s)",
            job.job_id,
            len(tasks),
            job.status.value,
        )
        return job

    async def wait_for_completion(
        self,
        job: BatchJob,
        token: Optional[CancellationToken] = None,
    ) -> BatchJob:
        """Poll ``job`` until completed; raise on failure, timeout or cancel.

        The remote job is cancelled best-effort when the client gives up on
        it, so it does not keep running unobserved.
        """
        token = token or CancellationToken()
        try:
            job = await self._poll_until_terminal(job, token)
        except (BatchTimeout, BatchPollError, AnalysisCancelled, asyncio.CancelledError):
            await self._abandon(job)
            raise

        if job.status == BatchJobStatus.FAILED:
            reason = "; ".join(job.errors) or "Unknown error"
            self._log.error("Batch job %s failed: %s", job.job_id, reason)
            raise BatchJobFailed(reason, job=job)
        self._log.info("Batch job %s completed", job.job_id)
        return job

    async def _poll_until_terminal(
        self,
        job: BatchJob,
        token: CancellationToken,
    ) -> BatchJob:
        self._log.info(
            "Waiting for batch job %s (max %.0fs)", job.job_id, self._timeout
        )
        started = self._clock()
        while not job.status.is_terminal:
            elapsed = self._clock() - started
            if elapsed > self._timeout:
                raise BatchTimeout(job.job_id, elapsed)

            await token.sleep(self._poll_interval)
            polled = await self._client.retrieve_batch_job(job.job_id)
            job = self._advance(job, polled)
            self.last_job = job
            self._log.info(
                "Batch status: %s | Completed: %d/%d",
                job.status.value,
                job.counts.completed,
                job.counts.total,
            )
        return job

    def _advance(self, current: BatchJob, polled: BatchJob) -> BatchJob:
        """Accept ``polled`` unless it would move the lifecycle backwards."""
        if current.status.can_advance_to(polled.status):
            return polled
        self._log.warning(
            "Ignoring out-of-order status %s for batch %s (currently %s)",
            polled.status.value,
            current.job_id,
            current.status.value,
        )
        return current

    async def _abandon(self, job: BatchJob) -> None:
        if not self._cancel_on_abandon:
            self._log.warning(
                "Abandoning batch job %s; it keeps running on the provider", job.job_id
            )
            return
        try:
            await self._client.cancel_batch_job(job.job_id)
        except BatchPollError as exc:
            self._log.warning("Could not cancel batch job %s: %s", job.job_id, exc)
        else:
            self._log.info("Requested cancellation of batch job %s", job.job_id)

    async def _download_results(self, job: BatchJob) -> str:
        parts: List[str] = []
        if job.output_file_id:
            parts.append(await self._client.download_file(job.output_file_id))
        else:
            self._log.warning("Batch job %s completed without an output file", job.job_id)
        if job.error_file_id:
            parts.append(await self._client.download_file(job.error_file_id))

        text = "\n".join(part.strip() for part in parts if part.strip())
        await self._write_artifact(f"results_{_timestamp()}.jsonl", text.encode("utf-8"))
        return text

    async def _write_artifact(self, filename: str, content: bytes) -> None:
        if self._work_dir is None:
            return
        path = self._work_dir / filename

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(_write)
        self._log.info("Wrote batch file %s", path)


def _timestamp() -> str:
    return datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


__all__ = ["BatchAnalyzer", "DEFAULT_POLL_INTERVAL_SECONDS", "DEFAULT_TIMEOUT_SECONDS"]
