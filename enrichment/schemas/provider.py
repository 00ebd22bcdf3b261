"""
Normalized view of a chat completion returned by the inference provider.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from enrichment.core.errors import ResponseParseError
from enrichment.schemas.cost import TokenUsage


class CompletionResponse(BaseModel):
    """Message content and token usage of a single completion."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: Optional[str] = None

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "CompletionResponse":
        """Build from a raw ``chat.completion`` body (single call or batch line)."""
        try:
            message = body["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ResponseParseError(
                "Completion body has no choices[0].message", raw=str(body)[:500]
            ) from exc

        content = message.get("content") if isinstance(message, Mapping) else None
        if not content:
            refusal = message.get("refusal") if isinstance(message, Mapping) else None
            raise ResponseParseError(
                f"Completion has no content{f' (refusal: {refusal})' if refusal else ''}",
                raw=str(message)[:500],
            )

        try:
            usage = TokenUsage.model_validate(body.get("usage") or {})
        except ValidationError as exc:
            raise ResponseParseError(
                "Completion usage block is malformed", raw=str(body.get("usage"))
            ) from exc

        return cls(content=content, usage=usage, model=body.get("model"))


__all__ = ["CompletionResponse"]
