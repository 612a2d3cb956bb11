"""Deterministic "buckets rendered" signal.

The view calls :meth:`RenderSignal.mark_rendered` after it has laid out a new
bucket list. The synchronizer waits on the signal instead of polling the
viewport on a timer.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class RenderSignal:
    """Generation-counted render completion event.

    Each ``mark_rendered`` call starts a new generation. A waiter that captured
    generation *n* wakes once any later generation has been marked.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._event = asyncio.Event()

    @property
    def generation(self) -> int:
        """Number of completed render passes."""
        return self._generation

    def mark_rendered(self) -> None:
        """Signal that a render pass has completed."""
        self._generation += 1
        logger.debug("Render pass %d completed", self._generation)
        # Wake everyone waiting on the previous generation, then re-arm
        self._event.set()
        self._event = asyncio.Event()

    async def wait_for_render(self, after: int, timeout: float) -> bool:
        """Wait until a render pass newer than ``after`` completes.

        Args:
            after: Generation observed by the caller
            timeout: Maximum seconds to wait

        Returns:
            True if a newer render pass completed, False on timeout
        """
        if self._generation > after:
            return True
        event = self._event
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return self._generation > after
        return True
