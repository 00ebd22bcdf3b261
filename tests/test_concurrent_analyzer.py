try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
import logging
from typing import Any, Dict

import pytest

from _stubs import STANDARD_PRICING, StubInferenceClient, make_encoder, make_item
from enrichment.core.cancellation import CancellationToken
from enrichment.core.errors import AnalysisCancelled, ProviderCallError
from enrichment.schemas import CompletionResponse
from enrichment.services import ConcurrentAnalyzer, SequentialAnalyzer


def _analyzer(client: StubInferenceClient, **kwargs: Any) -> ConcurrentAnalyzer:
    kwargs.setdefault("inter_batch_delay_ms", 0)
    return ConcurrentAnalyzer(
        client,  # type: ignore[arg-type]
        make_encoder(),
        pricing=STANDARD_PRICING,
        **kwargs,
    )


class WaveTrackingClient(StubInferenceClient):
    """Groups calls into waves: a wave starts whenever nothing is in flight."""

    def __init__(self) -> None:
        super().__init__()
        self.waves: list[list[str]] = []
        self._current: list[str] = []

    async def complete(self, body: Dict[str, Any]) -> CompletionResponse:
        if self.in_flight == 0:
            self._current = []
            self.waves.append(self._current)
        self._current.append(body["messages"][0]["content"][1]["image_url"]["url"])
        return await super().complete(body)


@pytest.mark.parametrize(
    "item_count, concurrency, expected_waves",
    [(25, 10, 3), (10, 10, 1), (7, 3, 3), (1, 4, 1)],
)
@pytest.mark.asyncio
async def test_runs_in_ceil_n_over_k_waves(
    item_count: int, concurrency: int, expected_waves: int
) -> None:
    client = WaveTrackingClient()
    analyzer = _analyzer(client, concurrency=concurrency)
    items = [make_item(f"p{i}", f"{i}.jpg") for i in range(item_count)]

    posts = await analyzer.process(items)

    assert len(posts) == item_count
    assert len(client.waves) == expected_waves
    assert client.max_in_flight == min(concurrency, item_count)
    assert all(len(wave) <= concurrency for wave in client.waves)


@pytest.mark.asyncio
async def test_logs_wave_progress(caplog: pytest.LogCaptureFixture) -> None:
    analyzer = _analyzer(StubInferenceClient(), concurrency=2)
    items = [make_item(f"p{i}", f"{i}.jpg") for i in range(5)]

    with caplog.at_level(logging.INFO):
        await analyzer.process(items)

    assert "Processing batch 1/3 (2 images)" in caplog.text
    assert "Processing batch 3/3 (1 images)" in caplog.text


@pytest.mark.asyncio
async def test_failures_do_not_cancel_siblings() -> None:
    client = StubInferenceClient(
        {"3.jpg": ProviderCallError("boom"), "7.jpg": "not json"}
    )
    analyzer = _analyzer(client, concurrency=4)
    items = [make_item(f"p{i}", f"{i}.jpg") for i in range(10)]

    posts = await analyzer.process(items)

    assert {post.post_id for post in posts} == {f"p{i}" for i in range(10)} - {"p3", "p7"}
    assert len(client.calls) == 10
    assert analyzer.get_cost_summary().processed_count == 8


@pytest.mark.asyncio
async def test_posts_match_sequential_grouping_regardless_of_order() -> None:
    client = StubInferenceClient()
    analyzer = _analyzer(client, concurrency=3)
    items = [
        make_item("p1", "a.jpg"),
        make_item("p2", "b.jpg"),
        make_item("p1", "c.jpg"),
        make_item("p3", "d.jpg"),
        make_item("p2", "e.jpg"),
    ]

    posts = await analyzer.process(items)

    grouped = {post.post_id: sorted(post.image_paths) for post in posts}
    assert grouped == {"p1": ["a.jpg", "c.jpg"], "p2": ["b.jpg", "e.jpg"], "p3": ["d.jpg"]}
    for post in posts:
        assert len(post.image_paths) == len(post.analyses)
    assert analyzer.get_cost_summary().total_cost == pytest.approx(5 * 0.00075)


@pytest.mark.asyncio
async def test_cancellation_during_delay_aborts_run() -> None:
    token = CancellationToken()
    client = StubInferenceClient()
    analyzer = _analyzer(client, concurrency=2, inter_batch_delay_ms=60_000)
    items = [make_item(f"p{i}", f"{i}.jpg") for i in range(4)]

    async def _cancel_soon() -> None:
        while len(client.calls) < 2:
            await asyncio.sleep(0)
        token.cancel()

    canceller = asyncio.create_task(_cancel_soon())
    with pytest.raises(AnalysisCancelled):
        await asyncio.wait_for(analyzer.process(items, cancellation=token), timeout=5)
    await canceller

    assert len(client.calls) == 2


@pytest.mark.parametrize("kwargs", [{"concurrency": 0}, {"inter_batch_delay_ms": -1}])
def test_rejects_invalid_configuration(kwargs: Dict[str, int]) -> None:
    with pytest.raises(ValueError):
        ConcurrentAnalyzer(
            StubInferenceClient(),  # type: ignore[arg-type]
            make_encoder(),
            pricing=STANDARD_PRICING,
            **kwargs,
        )


@pytest.mark.asyncio
async def test_concurrency_of_one_matches_sequential_run() -> None:
    items = [make_item("p1", "a.jpg"), make_item("p2", "b.jpg", username="bob")]
    sequential_client = StubInferenceClient()
    sequential = SequentialAnalyzer(
        sequential_client,  # type: ignore[arg-type]
        make_encoder(),
        pricing=STANDARD_PRICING,
    )
    concurrent_client = WaveTrackingClient()
    concurrent = _analyzer(concurrent_client, concurrency=1)

    sequential_posts = await sequential.process(items)
    concurrent_posts = await concurrent.process(items)

    assert len(concurrent_client.waves) == 2
    assert concurrent_client.max_in_flight == 1
    assert concurrent_client.calls == sequential_client.calls == ["a.jpg", "b.jpg"]
    assert [post.model_dump() for post in concurrent_posts] == [
        post.model_dump() for post in sequential_posts
    ]
    assert concurrent.get_cost_summary() == sequential.get_cost_summary()
