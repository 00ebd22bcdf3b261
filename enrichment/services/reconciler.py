"""
Parse provider payloads into typed results and match batch output to tasks.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, assert_never

from pydantic import ValidationError

from enrichment.core.errors import ItemError, ProviderCallError, ResponseParseError
from enrichment.schemas import (
    AnalysisItem,
    AnalysisResult,
    AnalysisTask,
    BackgroundColor,
    CompletionResponse,
    FashionAttributes,
    HookSlide,
    PromptVariant,
    TokenUsage,
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(slots=True)
class TaskOutcome:
    """Success-or-failure of one item; failures never escape as exceptions."""

    item: Optional[AnalysisItem]
    custom_id: Optional[str] = None
    result: Optional[AnalysisResult] = None
    usage: Optional[TokenUsage] = None
    error: Optional[ItemError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    @classmethod
    def failure(
        cls,
        error: ItemError,
        *,
        item: Optional[AnalysisItem] = None,
        custom_id: Optional[str] = None,
    ) -> "TaskOutcome":
        return cls(item=item, custom_id=custom_id, error=error)


def _clean_json_response(text: str) -> str:
    """Strip markdown code fences some models wrap around JSON."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_analysis(variant: PromptVariant, content: str) -> AnalysisResult:
    """Validate model output against the result model for ``variant``."""
    cleaned = _clean_json_response(content)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"Model output is not valid JSON: {exc}", raw=content) from exc
    if not isinstance(payload, dict):
        raise ResponseParseError("Model output is not a JSON object", raw=content)

    try:
        match variant:
            case PromptVariant.FASHION_ATTRIBUTES:
                return FashionAttributes.model_validate(payload)
            case PromptVariant.HOOK_SLIDE:
                return HookSlide.model_validate(payload)
            case PromptVariant.BACKGROUND_COLOR:
                return BackgroundColor.model_validate(payload)
            case _:
                assert_never(variant)
    except ValidationError as exc:
        raise ResponseParseError(
            f"Model output does not match the {variant.value} shape: "
            f"{exc.error_count()} error(s)",
            raw=content,
        ) from exc


def parse_completion(task: AnalysisTask, response: CompletionResponse) -> TaskOutcome:
    """Turn a completion for ``task`` into an outcome."""
    try:
        result = parse_analysis(task.variant, response.content)
    except ResponseParseError as exc:
        exc.post_id = task.item.post_id
        return TaskOutcome.failure(exc, item=task.item, custom_id=task.custom_id)
    return TaskOutcome(
        item=task.item,
        custom_id=task.custom_id,
        result=result,
        usage=response.usage,
    )


class BatchReconciler:
    """Map batch output lines back to the tasks they were generated for.

    Each ``custom_id`` is reconciled at most once; lines for unknown or
    already reconciled ids are logged and dropped.
    """

    def __init__(
        self,
        tasks: Iterable[AnalysisTask],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._log = logger or logging.getLogger(__name__)
        self._index: Dict[str, AnalysisTask] = {}
        for task in tasks:
            if task.custom_id in self._index:
                raise ValueError(f"Duplicate custom_id {task.custom_id}")
            self._index[task.custom_id] = task
        self._reconciled: set[str] = set()
        self.dropped_lines = 0

    def __len__(self) -> int:
        return len(self._index)

    @property
    def unmatched(self) -> List[AnalysisTask]:
        """Submitted tasks that no output line answered."""
        return [
            task
            for custom_id, task in self._index.items()
            if custom_id not in self._reconciled
        ]

    def reconcile_output(self, text: str) -> List[TaskOutcome]:
        outcomes: List[TaskOutcome] = []
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                self.dropped_lines += 1
                self._log.error(
                    "Dropping unparseable batch output line %d: %s",
                    line_number,
                    line[:200],
                )
                continue
            outcome = self.reconcile_line(record)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def reconcile_line(self, record: Any) -> Optional[TaskOutcome]:
        custom_id = record.get("custom_id") if isinstance(record, Mapping) else None
        if not isinstance(custom_id, str):
            self.dropped_lines += 1
            self._log.error("Dropping batch output line without a custom_id: %r", custom_id)
            return None
        task = self._index.get(custom_id)
        if task is None:
            self.dropped_lines += 1
            self._log.error("Could not find original item for %s", custom_id)
            return None
        if custom_id in self._reconciled:
            self.dropped_lines += 1
            self._log.error("Ignoring duplicate batch result for %s", custom_id)
            return None
        self._reconciled.add(custom_id)

        error = record.get("error")
        response = record.get("response")
        if response is None:
            response = {}
        body = response.get("body") if isinstance(response, Mapping) else None
        status_code = response.get("status_code", 200) if isinstance(response, Mapping) else None
        if error or status_code != 200 or not isinstance(body, Mapping):
            return TaskOutcome.failure(
                ProviderCallError(
                    f"Batch request {custom_id} failed: "
                    f"{_failure_detail(error, response, body, status_code)}",
                    post_id=task.item.post_id,
                ),
                item=task.item,
                custom_id=custom_id,
            )

        try:
            completion = CompletionResponse.from_body(body)
        except ResponseParseError as exc:
            exc.post_id = task.item.post_id
            return TaskOutcome.failure(exc, item=task.item, custom_id=custom_id)
        return parse_completion(task, completion)


def _failure_detail(error: Any, response: Any, body: Any, status_code: Any) -> str:
    if error:
        return str(error)
    if not isinstance(response, Mapping):
        return f"malformed response {str(response)[:200]!r}"
    if isinstance(body, Mapping) and body.get("error"):
        return str(body["error"])
    if status_code != 200:
        return f"status {status_code}" + (f": {str(body)[:200]}" if body else "")
    return f"malformed body {str(body)[:200]!r}"


__all__ = [
    "BatchReconciler",
    "TaskOutcome",
    "parse_analysis",
    "parse_completion",
]
