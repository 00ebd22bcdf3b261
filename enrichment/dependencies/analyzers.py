"""
Select and construct an analysis strategy from configuration.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from enrichment.clients import ImageLoader, InferenceClient
from enrichment.core.config import AppSettings, get_settings
from enrichment.dependencies.clients import get_inference_client, get_task_encoder
from enrichment.schemas import PromptVariant
from enrichment.services import (
    BaseAnalyzer,
    BatchAnalyzer,
    ConcurrentAnalyzer,
    SequentialAnalyzer,
    TaskEncoder,
)


class AnalysisStrategy(str, Enum):
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"
    BATCH = "batch"


def build_analyzer(
    strategy: AnalysisStrategy | str | None = None,
    variant: PromptVariant | str | None = None,
    *,
    settings: Optional[AppSettings] = None,
    inference_client: Optional[InferenceClient] = None,
    encoder: Optional[TaskEncoder] = None,
    logger: Optional[logging.Logger] = None,
) -> BaseAnalyzer:
    """Build the analyzer for ``strategy`` with its strategy's pricing table.

    Missing arguments fall back to the configured defaults.
    """
    if settings is None:
        settings = get_settings()
        inference_client = inference_client or get_inference_client()
        encoder = encoder or get_task_encoder()
    else:
        inference_client = inference_client or InferenceClient(settings.inference)
        encoder = encoder or TaskEncoder(
            ImageLoader(settings.images),
            model=settings.inference.model,
            endpoint=settings.batch.endpoint,
        )
    strategy = AnalysisStrategy(strategy or settings.strategy)
    variant = PromptVariant(variant or settings.variant)

    standard = settings.pricing.standard_table()
    if strategy is AnalysisStrategy.SEQUENTIAL:
        return SequentialAnalyzer(
            inference_client,
            encoder,
            pricing=standard,
            variant=variant,
            logger=logger,
        )
    if strategy is AnalysisStrategy.CONCURRENT:
        return ConcurrentAnalyzer(
            inference_client,
            encoder,
            pricing=standard,
            variant=variant,
            concurrency=settings.concurrency.concurrency,
            inter_batch_delay_ms=settings.concurrency.inter_batch_delay_ms,
            logger=logger,
        )
    return BatchAnalyzer(
        inference_client,
        encoder,
        pricing=settings.pricing.batch_table(),
        standard_pricing=standard,
        variant=variant,
        poll_interval_seconds=settings.batch.poll_interval_seconds,
        timeout_seconds=settings.batch.timeout_seconds,
        endpoint=settings.batch.endpoint,
        completion_window=settings.batch.completion_window,
        work_dir=settings.batch.work_dir,
        cancel_on_abandon=settings.batch.cancel_on_abandon,
        logger=logger,
    )


__all__ = ["AnalysisStrategy", "build_analyzer"]
