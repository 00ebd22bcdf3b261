try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import httpx
import openai
import pytest

from enrichment.clients import InferenceClient
from enrichment.core.config import InferenceSettings
from enrichment.core.errors import (
    BatchPollError,
    BatchSubmitError,
    ProviderCallError,
    ResponseParseError,
)
from enrichment.schemas import BatchJobStatus


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.example.com/v1"))


class _Completion:
    def __init__(self, payload: Dict[str, Any]) -> None:
        self._payload = payload

    def model_dump(self) -> Dict[str, Any]:
        return self._payload


def _batch(status: str, **overrides: Any) -> SimpleNamespace:
    values: Dict[str, Any] = {
        "id": "batch_abc",
        "status": status,
        "input_file_id": "file-in",
        "output_file_id": None,
        "error_file_id": None,
        "created_at": 1_700_000_000,
        "request_counts": SimpleNamespace(total=4, completed=3, failed=1),
        "errors": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class FakeOpenAI:
    """Minimal stand-in exposing the SDK surfaces the client uses."""

    def __init__(self, *, batch: Optional[SimpleNamespace] = None, error: Optional[Exception] = None) -> None:
        self.error = error
        self.batch = batch or _batch("validating")
        self.requests: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create_completion))
        self.files = SimpleNamespace(create=self._create_file, content=self._file_content)
        self.batches = SimpleNamespace(
            create=self._create_batch,
            retrieve=self._retrieve_batch,
            cancel=self._cancel_batch,
        )

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    async def _create_completion(self, **body: Any) -> _Completion:
        self._maybe_fail()
        self.requests.append(body)
        return _Completion(
            {
                "model": body["model"],
                "choices": [{"index": 0, "message": {"role": "assistant", "content": '{"h": false, "c": 0.1}'}}],
                "usage": {"prompt_tokens": 850, "completion_tokens": 12, "total_tokens": 862},
            }
        )

    async def _create_file(self, *, file: Any, purpose: str) -> SimpleNamespace:
        self._maybe_fail()
        self.requests.append({"file": file, "purpose": purpose})
        return SimpleNamespace(id="file-in")

    async def _file_content(self, file_id: str) -> SimpleNamespace:
        self._maybe_fail()
        return SimpleNamespace(text=f"contents of {file_id}")

    async def _create_batch(self, **kwargs: Any) -> SimpleNamespace:
        self._maybe_fail()
        self.requests.append(kwargs)
        return self.batch

    async def _retrieve_batch(self, job_id: str) -> SimpleNamespace:
        self._maybe_fail()
        return self.batch

    async def _cancel_batch(self, job_id: str) -> SimpleNamespace:
        self._maybe_fail()
        return _batch("cancelling")


def _client(fake: FakeOpenAI) -> InferenceClient:
    return InferenceClient(InferenceSettings(), client=fake)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_complete_normalizes_content_and_usage() -> None:
    fake = FakeOpenAI()
    body = {"model": "gpt-4o-mini", "messages": [], "max_tokens": 150, "temperature": 0}

    response = await _client(fake).complete(body)

    assert response.content == '{"h": false, "c": 0.1}'
    assert response.usage.prompt_tokens == 850
    assert response.usage.total_tokens == 862
    assert fake.requests == [body]


@pytest.mark.asyncio
async def test_complete_wraps_sdk_errors() -> None:
    fake = FakeOpenAI(error=_connection_error())

    with pytest.raises(ProviderCallError):
        await _client(fake).complete({"model": "gpt-4o-mini", "messages": []})


@pytest.mark.asyncio
async def test_complete_without_choices_is_parse_error() -> None:
    fake = FakeOpenAI()

    async def _empty(**body: Any) -> _Completion:
        return _Completion({"choices": []})

    fake.chat = SimpleNamespace(completions=SimpleNamespace(create=_empty))

    with pytest.raises(ResponseParseError):
        await _client(fake).complete({"model": "gpt-4o-mini", "messages": []})


@pytest.mark.asyncio
async def test_upload_and_create_batch_job() -> None:
    fake = FakeOpenAI()
    client = _client(fake)

    file_id = await client.upload_batch_file(filename="tasks.jsonl", content=b"{}\n")
    job = await client.create_batch_job(
        input_file_id=file_id, endpoint="/v1/chat/completions", completion_window="24h"
    )

    assert fake.requests[0] == {"file": ("tasks.jsonl", b"{}\n"), "purpose": "batch"}
    assert fake.requests[1] == {
        "input_file_id": "file-in",
        "endpoint": "/v1/chat/completions",
        "completion_window": "24h",
    }
    assert job.job_id == "batch_abc"
    assert job.status is BatchJobStatus.VALIDATING
    assert job.counts.total == 4
    assert job.created_at is not None and job.created_at.year == 2023


@pytest.mark.asyncio
async def test_submit_errors_are_batch_submit_errors() -> None:
    client = _client(FakeOpenAI(error=_connection_error()))

    with pytest.raises(BatchSubmitError):
        await client.upload_batch_file(filename="tasks.jsonl", content=b"{}")
    with pytest.raises(BatchSubmitError):
        await client.create_batch_job(
            input_file_id="file-in", endpoint="/v1/chat/completions", completion_window="24h"
        )


@pytest.mark.asyncio
async def test_poll_errors_are_batch_poll_errors() -> None:
    client = _client(FakeOpenAI(error=_connection_error()))

    with pytest.raises(BatchPollError):
        await client.retrieve_batch_job("batch_abc")
    with pytest.raises(BatchPollError):
        await client.download_file("file-out")


@pytest.mark.parametrize(
    "provider_status, expected",
    [
        ("validating", BatchJobStatus.VALIDATING),
        ("in_progress", BatchJobStatus.IN_PROGRESS),
        ("finalizing", BatchJobStatus.FINALIZING),
        ("cancelling", BatchJobStatus.FINALIZING),
        ("completed", BatchJobStatus.COMPLETED),
        ("failed", BatchJobStatus.FAILED),
        ("expired", BatchJobStatus.FAILED),
        ("cancelled", BatchJobStatus.FAILED),
        ("something_new", BatchJobStatus.FAILED),
    ],
)
@pytest.mark.asyncio
async def test_provider_statuses_map_onto_lifecycle(
    provider_status: str, expected: BatchJobStatus
) -> None:
    client = _client(FakeOpenAI(batch=_batch(provider_status)))

    job = await client.retrieve_batch_job("batch_abc")

    assert job.status is expected


@pytest.mark.asyncio
async def test_failed_job_collects_provider_errors() -> None:
    errors = SimpleNamespace(data=[SimpleNamespace(message="line 3: invalid model")])
    client = _client(FakeOpenAI(batch=_batch("failed", errors=errors, error_file_id="file-err")))

    job = await client.retrieve_batch_job("batch_abc")

    assert job.errors == ["line 3: invalid model"]
    assert job.error_file_id == "file-err"


@pytest.mark.asyncio
async def test_expired_job_records_reason() -> None:
    client = _client(FakeOpenAI(batch=_batch("expired")))

    job = await client.retrieve_batch_job("batch_abc")

    assert job.errors == ["batch expired"]


@pytest.mark.asyncio
async def test_download_returns_text() -> None:
    client = _client(FakeOpenAI())

    assert await client.download_file("file-out") == "contents of file-out"


@pytest.mark.asyncio
async def test_cancel_returns_job_view() -> None:
    client = _client(FakeOpenAI())

    job = await client.cancel_batch_job("batch_abc")

    assert job.status is BatchJobStatus.FINALIZING
