"""Convert analysis items into provider-ready request lines."""

from __future__ import annotations

from typing import Any, Dict

from enrichment.clients import ImageLoader
from enrichment.schemas import AnalysisItem, AnalysisTask, PromptVariant
from enrichment.services.prompts import prompt_for


class TaskEncoder:
    """Build chat-completion requests for a model and endpoint."""

    def __init__(
        self,
        image_loader: ImageLoader,
        *,
        model: str,
        endpoint: str = "/v1/chat/completions",
    ) -> None:
        self._images = image_loader
        self._model = model
        self._endpoint = endpoint

    @staticmethod
    def custom_id(variant: PromptVariant, sequence_index: int, post_id: str) -> str:
        """Correlation id unique per task within one run."""
        return f"{variant.value}-{sequence_index}-{post_id}"

    async def encode(
        self,
        item: AnalysisItem,
        variant: PromptVariant,
        sequence_index: int,
    ) -> AnalysisTask:
        """Return the task for ``item``; raises ``ItemUnreadable`` for bad images."""
        image_ref = await self._images.resolve(item.image_path)
        custom_id = self.custom_id(variant, sequence_index, item.post_id)
        return AnalysisTask(
            custom_id=custom_id,
            item=item,
            variant=variant,
            request={
                "custom_id": custom_id,
                "method": "POST",
                "url": self._endpoint,
                "body": self._build_body(variant, image_ref),
            },
        )

    def _build_body(self, variant: PromptVariant, image_ref: str) -> Dict[str, Any]:
        prompt = prompt_for(variant)
        return {
            "model": self._model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt.text},
                        {"type": "image_url", "image_url": {"url": image_ref}},
                    ],
                }
            ],
            "max_tokens": prompt.max_tokens,
            "temperature": 0,
        }


__all__ = ["TaskEncoder"]
