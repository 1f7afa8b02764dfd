"""Cooperative cancellation for analysis runs."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """One-shot cancellation signal shared by everything in a run.

    The orchestrator checks it at batch boundaries and hands it to the
    analyzer so in-flight stream reads can stop early. Cancelling is
    idempotent; the first reason wins.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
