"""Keep the chronological list and the externally selected date in agreement.

Two inputs drive the state machine:

* an explicit date request (calendar click, item click) scrolls the list to
  that day, or to the nearest day with items when it has none;
* a user scroll updates the visible date, but only while no programmatic
  scroll is in flight, so the list's own scrolling never feeds back.

Everything runs on one asyncio loop. The only suspension points are the
render wait and the scroll-settle delay. After each one the request checks
that it is still the latest, so a superseded request can never land a stale
scroll.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Optional

from agenda_lite.calendar.bucketer import find_bucket, nearest_bucket
from agenda_lite.calendar.date_normalizer import (
    DayLike,
    format_display_date,
    to_local_calendar_day,
)
from agenda_lite.calendar.models import CalendarItem, DayBucket
from agenda_lite.domain.protocols import DayViewport, SyncStateListener
from agenda_lite.domain.render_signal import RenderSignal

logger = logging.getLogger(__name__)

LOADING_MESSAGE = "Loading items for {requested}..."
FALLBACK_MESSAGE = "No items on {requested}. Showing nearest date: {shown}."
FALLBACK_NOT_RENDERED_MESSAGE = "No items on {requested}. Nearest date {shown} is not rendered yet."
NOTHING_MESSAGE = "No items on {requested} or any other date."

# Used when the requested day has items but its element could not be reached
UNREACHABLE_FALLBACK_MESSAGE = "Could not scroll to {requested}. Showing nearest date: {shown}."
UNREACHABLE_NOT_RENDERED_MESSAGE = (
    "Could not scroll to {requested}. Nearest date {shown} is not rendered yet."
)
UNREACHABLE_MESSAGE = "Could not scroll to {requested}."


class SyncPhase(str, Enum):
    """Synchronizer phases."""

    IDLE = "idle"
    PROGRAMMATIC_SCROLLING = "programmatic_scrolling"
    NO_MATCH_FALLBACK = "no_match_fallback"


@dataclass
class SyncState:
    """Mutable selection/visibility state of one list view.

    ``visible_date`` reports user intent: after a fallback it still equals the
    requested date, while ``shown_date`` records the day actually scrolled to.
    """

    selected_date: Optional[date] = None
    visible_date: Optional[date] = None
    phase: SyncPhase = SyncPhase.IDLE
    pending_message: Optional[str] = None
    shown_date: Optional[date] = None

    @property
    def is_programmatic_scroll(self) -> bool:
        """True while a request owns the scroll position."""
        return self.phase is not SyncPhase.IDLE


class ScrollSynchronizer:
    """State machine behind ``request_select_date`` and ``on_user_scroll``."""

    def __init__(
        self,
        viewport: DayViewport,
        render_signal: Optional[RenderSignal] = None,
        *,
        settle_delay: float = 0.4,
        render_wait: float = 0.3,
        on_change: Optional[SyncStateListener] = None,
        initial_date: Optional[date] = None,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            viewport: Rendered list collaborator
            render_signal: Signal the view fires after each render pass
            settle_delay: Seconds a programmatic scroll is given to finish
            render_wait: Seconds to wait for a render pass before retrying a lookup
            on_change: Called with a snapshot of the state after every transition
            initial_date: Initial selected and visible day
        """
        self.viewport = viewport
        self.render_signal = render_signal or RenderSignal()
        self.settle_delay = settle_delay
        self.render_wait = render_wait
        self.on_change = on_change

        self._state = SyncState(selected_date=initial_date, visible_date=initial_date)
        self._buckets: list[DayBucket] = []
        self._sequence = 0
        self._task: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def state(self) -> SyncState:
        """Snapshot of the current state."""
        return replace(self._state)

    @property
    def buckets(self) -> list[DayBucket]:
        return list(self._buckets)

    def set_buckets(self, buckets: Sequence[DayBucket]) -> None:
        """Replace the bucket list for the next render pass."""
        self._buckets = list(buckets)

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    def request_select_date(self, day: DayLike) -> asyncio.Task[None]:
        """Select ``day`` and bring it (or the nearest day with items) into view.

        The selected date is updated before this method returns. Scrolling runs
        in the returned task; an earlier in-flight request is cancelled.

        Args:
            day: Requested day, or a timestamp whose calendar day is used

        Returns:
            Task completing when the state machine is back in IDLE

        Raises:
            RuntimeError: If called after ``close()`` or outside a running loop
        """
        if self._closed:
            raise RuntimeError("ScrollSynchronizer is closed")

        target = to_local_calendar_day(day)
        self._sequence += 1
        sequence = self._sequence
        self._cancel_in_flight()

        self._update(
            selected_date=target,
            phase=SyncPhase.PROGRAMMATIC_SCROLLING,
            pending_message=None,
            shown_date=None,
        )
        logger.debug("Select request #%d for %s", sequence, target)

        task = asyncio.get_running_loop().create_task(self._run_request(target, sequence))
        self._task = task
        return task

    def on_user_scroll(self) -> bool:
        """Handle a user-driven scroll.

        Returns:
            True if ``visible_date`` was updated, False if the event was ignored
        """
        if self._state.phase is not SyncPhase.IDLE:
            return False

        try:
            top_day = self.viewport.top_visible_day()
        except Exception:
            logger.debug("Viewport top_visible_day failed; ignoring scroll", exc_info=True)
            return False
        if top_day is None:
            return False

        top_day = to_local_calendar_day(top_day)
        if top_day == self._state.visible_date:
            return False
        self._update(visible_date=top_day, shown_date=None)
        return True

    def on_item_click(self, item: CalendarItem) -> Optional[asyncio.Task[None]]:
        """Select the calendar day of a clicked item; undated items are ignored."""
        if item.start is None:
            return None
        return self.request_select_date(to_local_calendar_day(item.start))

    def close(self) -> None:
        """Cancel in-flight work; the synchronizer accepts no further requests."""
        self._closed = True
        self._cancel_in_flight()

    # ------------------------------------------------------------------
    # Request flow
    # ------------------------------------------------------------------

    async def _run_request(self, target: date, sequence: int) -> None:
        try:
            element = await self._locate(target, sequence)
            if self._is_stale(sequence):
                return

            scrolled = element is not None and await self._scroll(element)
            if element is not None and not scrolled:
                # A failed scroll counts as a missing element: retry once
                element = await self._retry_after_render(target, sequence)
                if self._is_stale(sequence):
                    return
                scrolled = element is not None and await self._scroll(element)

            if scrolled:
                if not await self._settle(sequence):
                    return
                self._update(
                    visible_date=target,
                    shown_date=target,
                    phase=SyncPhase.IDLE,
                    pending_message=None,
                )
                return

            await self._fallback(target, sequence)
        except asyncio.CancelledError:
            logger.debug("Select request #%d cancelled", sequence)
            raise

    async def _locate(self, target: date, sequence: int) -> Optional[Any]:
        """Find the element for ``target``, waiting once for a render pass."""
        has_bucket = find_bucket(self._buckets, target) is not None
        # Before the first render pass the bucket list may simply not be loaded
        if not has_bucket and self.render_signal.generation > 0:
            return None

        element = self._find(target) if has_bucket else None
        if element is not None:
            return element
        return await self._retry_after_render(target, sequence)

    async def _retry_after_render(self, target: date, sequence: int) -> Optional[Any]:
        """Show the loading message, wait for one render pass and look again."""
        generation = self.render_signal.generation
        self._update(
            pending_message=LOADING_MESSAGE.format(requested=format_display_date(target))
        )
        await self.render_signal.wait_for_render(generation, self.render_wait)
        if self._is_stale(sequence):
            return None

        if find_bucket(self._buckets, target) is None:
            return None
        return self._find(target)

    async def _fallback(self, target: date, sequence: int) -> None:
        self._update(phase=SyncPhase.NO_MATCH_FALLBACK)
        requested = format_display_date(target)
        # The day may have items whose element could not be reached
        has_items = find_bucket(self._buckets, target) is not None

        nearest = nearest_bucket(self._buckets, target, exclude=target)
        if nearest is None:
            logger.debug("No buckets to fall back to for %s", target)
            template = UNREACHABLE_MESSAGE if has_items else NOTHING_MESSAGE
            self._finish_fallback(target, None, template.format(requested=requested))
            return

        shown = format_display_date(nearest.day)
        element = self._find(nearest.day)
        if element is None or not await self._scroll(element):
            template = (
                UNREACHABLE_NOT_RENDERED_MESSAGE if has_items else FALLBACK_NOT_RENDERED_MESSAGE
            )
            self._finish_fallback(
                target, None, template.format(requested=requested, shown=shown)
            )
            return

        if not await self._settle(sequence):
            return
        logger.debug("Fell back from %s to nearest day %s", target, nearest.day)
        template = UNREACHABLE_FALLBACK_MESSAGE if has_items else FALLBACK_MESSAGE
        self._finish_fallback(
            target, nearest.day, template.format(requested=requested, shown=shown)
        )

    def _finish_fallback(self, target: date, shown: Optional[date], message: str) -> None:
        # The requested day stays the visible day even when another is shown
        self._update(
            visible_date=target,
            shown_date=shown,
            phase=SyncPhase.IDLE,
            pending_message=message,
        )

    async def _settle(self, sequence: int) -> bool:
        if self._is_stale(sequence):
            return False
        await asyncio.sleep(self.settle_delay)
        return not self._is_stale(sequence)

    # ------------------------------------------------------------------
    # Viewport access; failures count as "not found"
    # ------------------------------------------------------------------

    def _find(self, day: date) -> Optional[Any]:
        try:
            return self.viewport.find_day_element(day)
        except Exception:
            logger.debug("Viewport lookup for %s failed", day, exc_info=True)
            return None

    async def _scroll(self, element: Any) -> bool:
        try:
            outcome = self.viewport.scroll_into_view(element)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.debug("Viewport scroll failed", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _is_stale(self, sequence: int) -> bool:
        return self._closed or sequence != self._sequence

    def _cancel_in_flight(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _update(self, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(self._state, key, value)
        if self.on_change is not None:
            self.on_change(replace(self._state))
