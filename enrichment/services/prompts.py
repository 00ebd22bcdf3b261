"""
Vision prompts for every analysis variant.

The fashion prompt asks for compressed keys to keep completions short; the
result models accept both the compressed and the verbose spelling.
"""

from __future__ import annotations

from dataclasses import dataclass

from enrichment.schemas import PromptVariant


@dataclass(frozen=True, slots=True)
class PromptSpec:
    """Prompt text and completion budget for one variant."""

    text: str
    max_tokens: int


FASHION_ATTRIBUTES_PROMPT = (
    'Analyze image. Return JSON: {a:"aesthetic",c:["colors"],s:"season",'
    'o:"occasion",ad:["additional"]}'
)

HOOK_SLIDE_PROMPT = """
Analyze if this image is a "hook slide" - an image with text overlays that announces a theme like "Back to School Outfits", "Summer Vacation Fits", "Date Night Looks", etc.

Return JSON: {
  "is_hook_slide": true/false,
  "confidence": 0.0-1.0,
  "text_detected": "extracted text from image or null",
  "theme": "specific theme like 'back to school', 'date night', 'summer vacation' or null",
  "content_direction": "brief description of what type of content this suggests or null",
  "target_vibe": "aesthetic vibe like 'preppy', 'streetwear', 'glam', 'casual' or null"
}

Focus on images that have clear text overlays announcing outfit themes, not just fashion images.
""".strip()

BACKGROUND_COLOR_PROMPT = """
Analyze the background colors of this image. Focus on the dominant background color(s) behind the main subject.

Return JSON: {
  "primary_bg_color": "specific color name like 'white', 'light gray', 'beige', 'black'",
  "secondary_bg_color": "secondary background color or null",
  "bg_color_hex": "estimated hex color like '#FFFFFF' or null",
  "bg_type": "solid", "gradient", "textured", or "complex",
  "bg_brightness": "light", "medium", or "dark",
  "uniformity_score": 0.0-1.0,
  "suitable_for_matching": true/false
}

Focus on identifying clean, uniform backgrounds that would work well for content matching.
""".strip()


PROMPTS: dict[PromptVariant, PromptSpec] = {
    PromptVariant.FASHION_ATTRIBUTES: PromptSpec(FASHION_ATTRIBUTES_PROMPT, 100),
    PromptVariant.HOOK_SLIDE: PromptSpec(HOOK_SLIDE_PROMPT, 150),
    PromptVariant.BACKGROUND_COLOR: PromptSpec(BACKGROUND_COLOR_PROMPT, 120),
}


def prompt_for(variant: PromptVariant) -> PromptSpec:
    return PROMPTS[variant]


__all__ = [
    "BACKGROUND_COLOR_PROMPT",
    "FASHION_ATTRIBUTES_PROMPT",
    "HOOK_SLIDE_PROMPT",
    "PROMPTS",
    "PromptSpec",
    "prompt_for",
]
