"""Analysis orchestration for enriching social-media images with model-derived attributes."""

__version__ = "0.1.0"
