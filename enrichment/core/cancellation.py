"""Cooperative cancellation for long-running analysis runs."""

from __future__ import annotations

import asyncio

from enrichment.core.errors import AnalysisCancelled


class CancellationToken:
    """Signal shared between a caller and a running analyzer.

    Analyzers check the token at every suspension point (before each provider
    call, during inter-chunk delays and on every batch poll tick). Sleeping on
    the token wakes up as soon as ``cancel()`` is called.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Analysis run cancelled"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled(self._reason)

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        self.raise_if_cancelled()
        if seconds <= 0:
            # Still yield so sibling tasks get a turn.
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()


__all__ = ["CancellationToken"]
