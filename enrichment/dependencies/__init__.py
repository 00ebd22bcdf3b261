"""Expose dependency helpers for scripts and embedding applications."""

from .analyzers import AnalysisStrategy, build_analyzer
from .clients import get_image_loader, get_inference_client, get_task_encoder

__all__ = [
    "AnalysisStrategy",
    "build_analyzer",
    "get_image_loader",
    "get_inference_client",
    "get_task_encoder",
]
