"""Expose constructed client wrappers."""

from .images import ImageLoader
from .inference import InferenceClient

__all__ = [
    "ImageLoader",
    "InferenceClient",
]
