"""AgendaEngine: the facade the list view talks to.

Wires the processing pipeline, the scroll synchronizer and the rescheduler
behind the inbound UI operations, and sends due-date changes to the
persistence collaborator.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any, Optional, Union

from agenda_lite.calendar.date_normalizer import DayLike
from agenda_lite.calendar.models import CalendarItem, DayBucket, TaskSection
from agenda_lite.core.config_loader import Config
from agenda_lite.core.timezone_utils import resolve_timezone
from agenda_lite.domain.pipeline import ProcessingContext
from agenda_lite.domain.pipeline_stages import create_agenda_pipeline
from agenda_lite.domain.protocols import DayViewport, ItemStore, SyncStateListener
from agenda_lite.domain.render_signal import RenderSignal
from agenda_lite.domain.rescheduler import (
    OptimisticPlacement,
    Rescheduler,
    SectionLike,
    move_to_day,
    parse_section,
)
from agenda_lite.domain.scroll_sync import ScrollSynchronizer, SyncState
from agenda_lite.exceptions import AgendaError, ItemNotFoundError

logger = logging.getLogger(__name__)

ItemLike = Union[CalendarItem, Mapping[str, Any]]


@dataclass
class DropOutcome:
    """Result of a drop onto a section or a calendar day."""

    item_id: str
    section: Optional[TaskSection]
    due: Optional[datetime]
    applied: bool
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        """True when the new due date was applied and persisted."""
        return self.applied and self.error is None


class AgendaEngine:
    """Temporal event engine for one list view.

    Example:
        engine = AgendaEngine(store, viewport, config)
        await engine.load_items(records)
        engine.mark_rendered()
        await engine.request_select_date(date(2025, 3, 1))
        outcome = await engine.on_item_drop("task-1", "Tomorrow")
    """

    def __init__(
        self,
        store: ItemStore,
        viewport: DayViewport,
        config: Optional[Config] = None,
        *,
        tz: Optional[tzinfo] = None,
        on_change: Optional[SyncStateListener] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Persistence collaborator for due-date updates
            viewport: Rendered list collaborator
            config: Engine configuration (defaults when omitted)
            tz: Viewer timezone; overrides ``config.default_timezone``
            on_change: SyncState change callback
            now: Fixed reference time for expansion horizons (tests)
        """
        self.config = config or Config()
        self.store = store
        self.tz = tz or resolve_timezone(self.config.default_timezone)
        self.now = now

        self.render_signal = RenderSignal()
        self.synchronizer = ScrollSynchronizer(
            viewport,
            self.render_signal,
            settle_delay=self.config.scroll_settle_seconds,
            render_wait=self.config.render_wait_seconds,
            on_change=on_change,
        )
        self.rescheduler = Rescheduler(self.config, self.tz)
        self._pipeline = create_agenda_pipeline(self.config)

        self._items: list[CalendarItem] = []
        self._buckets: list[DayBucket] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Outbound UI state
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[CalendarItem]:
        """Stored (non-synthetic) items currently loaded."""
        return list(self._items)

    @property
    def buckets(self) -> list[DayBucket]:
        return list(self._buckets)

    @property
    def state(self) -> SyncState:
        return self.synchronizer.state

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_items(self, records: Iterable[ItemLike]) -> list[DayBucket]:
        """Replace the item collection and recompute the buckets.

        Args:
            records: CalendarItem instances or raw persistence rows

        Returns:
            New bucket list

        Raises:
            AgendaError: If the processing pipeline fails
        """
        items = [
            record if isinstance(record, CalendarItem) else CalendarItem.from_record(record)
            for record in records
        ]
        async with self._lock:
            await self._rebuild(items)
        logger.info("Loaded %d items into %d day buckets", len(items), len(self._buckets))
        return self.buckets

    def mark_rendered(self) -> None:
        """Called by the view after it has rendered the current buckets."""
        self.render_signal.mark_rendered()

    async def _rebuild(self, items: list[CalendarItem]) -> None:
        context = ProcessingContext(
            horizon_months=self.config.horizon_months,
            max_occurrences_per_rule=self.config.max_occurrences_per_rule,
            now=self.now,
            items=list(items),
        )
        result = await self._pipeline.process(context)
        if not result.success:
            raise AgendaError("Item processing failed: " + "; ".join(result.errors))

        self._items = items
        self._buckets = result.buckets
        self.synchronizer.set_buckets(self._buckets)

    # ------------------------------------------------------------------
    # Inbound UI operations
    # ------------------------------------------------------------------

    def request_select_date(self, day: DayLike) -> asyncio.Task[None]:
        """Select a day from outside the list (e.g. a calendar click)."""
        return self.synchronizer.request_select_date(day)

    def on_user_scroll(self) -> bool:
        """Forward a user scroll event; returns True if the visible date changed."""
        return self.synchronizer.on_user_scroll()

    def on_item_click(self, item: CalendarItem) -> Optional[asyncio.Task[None]]:
        """Select the day of a clicked item."""
        return self.synchronizer.on_item_click(item)

    async def on_item_drop(
        self, item_id: str, section: SectionLike, today: Optional[date] = None
    ) -> DropOutcome:
        """Handle a drop of an item onto a task-list section.

        The new due date is placed optimistically, then persisted. When
        persistence raises, the placement is rolled back and the error is
        returned in the outcome.

        Args:
            item_id: Id of the dropped item
            section: Destination section
            today: Viewer's current day (defaults to the engine timezone's today)

        Returns:
            DropOutcome describing what happened

        Raises:
            UnknownSectionError: If ``section`` is not a known section
            ItemNotFoundError: If no loaded item has ``item_id``
        """
        target = parse_section(section)
        item = self._find_item(item_id)
        current_day = today if today is not None else self.rescheduler.today(self.now)

        if not self.rescheduler.can_drop(item, target, current_day):
            logger.debug("Ignoring drop of %s onto its own section %s", item_id, target.value)
            return DropOutcome(item_id, target, item.start, applied=False)

        new_due = self.rescheduler.reschedule(item, target, current_day)
        return await self._commit(item_id, target, new_due)

    async def move_item_to_day(self, item_id: str, day: DayLike) -> DropOutcome:
        """Handle a drop of an item onto a calendar day cell."""
        item = self._find_item(item_id)
        moved = move_to_day(item, day, neutral_time=self.rescheduler.neutral_time)
        return await self._commit(item_id, None, moved.start)

    async def _commit(
        self, item_id: str, section: Optional[TaskSection], new_due: Optional[datetime]
    ) -> DropOutcome:
        async with self._lock:
            placement = OptimisticPlacement(self._items, item_id, new_due)
            await self._rebuild(placement.apply())

        try:
            await self.store.update_item_due_date(item_id, new_due)
        except Exception as e:
            logger.exception("Persisting due date for %s failed; rolling back", item_id)
            async with self._lock:
                await self._rebuild(placement.rollback(self._items))
            return DropOutcome(item_id, section, new_due, applied=False, error=e)

        placement.confirm()
        logger.info("Rescheduled %s to %s", item_id, new_due.isoformat() if new_due else "Someday")
        return DropOutcome(item_id, section, new_due, applied=True)

    def _find_item(self, item_id: str) -> CalendarItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise ItemNotFoundError(f"Item {item_id!r} not found")

    def close(self) -> None:
        """Cancel in-flight synchronizer work when the view unmounts."""
        self.synchronizer.close()
