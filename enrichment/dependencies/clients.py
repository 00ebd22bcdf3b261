"""
Factory functions providing shared clients for analyzers and scripts.
"""

from functools import lru_cache

from enrichment.clients import ImageLoader, InferenceClient
from enrichment.core.config import AppSettings, get_settings
from enrichment.services import TaskEncoder


@lru_cache()
def _settings() -> AppSettings:
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_inference_client() -> InferenceClient:
    """Provide the inference provider client."""
    settings = _settings()
    return InferenceClient(settings.inference)


@lru_cache()
def get_image_loader() -> ImageLoader:
    """Provide image reference resolver."""
    settings = _settings()
    return ImageLoader(settings.images)


def get_task_encoder() -> TaskEncoder:
    """Build a task encoder for the configured model and batch endpoint."""
    settings = _settings()
    return TaskEncoder(
        get_image_loader(),
        model=settings.inference.model,
        endpoint=settings.batch.endpoint,
    )


__all__ = [
    "get_image_loader",
    "get_inference_client",
    "get_task_encoder",
]
