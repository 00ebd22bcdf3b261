"""
Typed analysis payloads returned by the vision model.

Each prompt variant has its own model; ``AnalysisResult`` is the union of all
of them, discriminated by ``variant``. The validation aliases accept both the
verbose keys and the compressed keys the prompts ask for to save tokens.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PromptVariant(str, Enum):
    """Kinds of analysis a task can request."""

    FASHION_ATTRIBUTES = "fashion_attributes"
    HOOK_SLIDE = "hook_slide"
    BACKGROUND_COLOR = "background_color"


class _ResultModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FashionAttributes(_ResultModel):
    """Style, palette and seasonal tags for an outfit image."""

    variant: Literal[PromptVariant.FASHION_ATTRIBUTES] = PromptVariant.FASHION_ATTRIBUTES
    aesthetic: str = Field(..., validation_alias=AliasChoices("aesthetic", "a"))
    colors: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("colors", "c")
    )
    season: str = Field(..., validation_alias=AliasChoices("season", "s"))
    occasion: str = Field(..., validation_alias=AliasChoices("occasion", "o"))
    additional: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("additional", "ad")
    )


class HookSlide(_ResultModel):
    """Detection of a text overlay announcing a content theme."""

    variant: Literal[PromptVariant.HOOK_SLIDE] = PromptVariant.HOOK_SLIDE
    is_hook_slide: bool = Field(..., validation_alias=AliasChoices("is_hook_slide", "h"))
    confidence: float = Field(
        ..., ge=0.0, le=1.0, validation_alias=AliasChoices("confidence", "c")
    )
    theme: Optional[str] = Field(None, validation_alias=AliasChoices("theme", "th"))
    text: Optional[str] = Field(
        None, validation_alias=AliasChoices("text", "text_detected", "t")
    )
    target_vibe: Optional[str] = Field(
        None, validation_alias=AliasChoices("target_vibe", "tv")
    )
    content_direction: Optional[str] = Field(
        None, validation_alias=AliasChoices("content_direction", "cd")
    )

    def is_confident(self, threshold: float = 0.7) -> bool:
        return self.is_hook_slide and self.confidence > threshold


class BackgroundColor(_ResultModel):
    """Dominant background colour and how uniform it is."""

    variant: Literal[PromptVariant.BACKGROUND_COLOR] = PromptVariant.BACKGROUND_COLOR
    primary_color: str = Field(
        ..., validation_alias=AliasChoices("primary_color", "primary_bg_color")
    )
    secondary_color: Optional[str] = Field(
        None, validation_alias=AliasChoices("secondary_color", "secondary_bg_color")
    )
    hex: Optional[str] = Field(None, validation_alias=AliasChoices("hex", "bg_color_hex"))
    type: Literal["solid", "gradient", "textured", "complex"] = Field(
        ..., validation_alias=AliasChoices("type", "bg_type")
    )
    brightness: Literal["light", "medium", "dark"] = Field(
        ..., validation_alias=AliasChoices("brightness", "bg_brightness")
    )
    uniformity: float = Field(
        ..., ge=0.0, le=1.0, validation_alias=AliasChoices("uniformity", "uniformity_score")
    )
    suitable_for_matching: bool = Field(...)


AnalysisResult = Annotated[
    Union[FashionAttributes, HookSlide, BackgroundColor],
    Field(discriminator="variant"),
]


__all__ = [
    "AnalysisResult",
    "BackgroundColor",
    "FashionAttributes",
    "HookSlide",
    "PromptVariant",
]
