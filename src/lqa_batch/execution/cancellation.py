"""Cooperative batch cancellation.

Setting the token never interrupts an in-flight analysis call. Workers read
it before each dequeue and the retry loop reads it before each attempt, so
cancellation only stops new work from starting.
"""

from __future__ import annotations

import asyncio

DEFAULT_CANCEL_REASON = "Batch cancelled"


class CancellationToken:
    """One-shot cancellation flag shared by every worker of a batch.

    The token is set at most once and never reset. ``cancel()`` must be
    called from the event loop thread (use ``loop.call_soon_threadsafe``
    from elsewhere).
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = DEFAULT_CANCEL_REASON) -> bool:
        """Set the token.

        Returns:
            True if this call set the token, False if it was already set.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until cancelled or ``timeout`` elapses.

        Returns:
            Whether the token is set.
        """
        if timeout is not None and timeout <= 0:
            return self.is_cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except TimeoutError:
            pass
        return self.is_cancelled

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"
