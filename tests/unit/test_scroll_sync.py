"""Unit tests for agenda_lite.domain.scroll_sync and render_signal."""

import asyncio
from datetime import date
from typing import Any

import pytest

from agenda_lite.calendar.models import DayBucket
from agenda_lite.domain.render_signal import RenderSignal
from agenda_lite.domain.scroll_sync import ScrollSynchronizer, SyncPhase, SyncState
from tests.fixtures.agenda_data import FakeViewport, make_item, utc

pytestmark = pytest.mark.unit

FEB_27 = date(2025, 2, 27)
MAR_01 = date(2025, 3, 1)
MAR_10 = date(2025, 3, 10)
MAR_12 = date(2025, 3, 12)


def _synchronizer(
    viewport: FakeViewport, days: list[date], rendered: bool = True, **kwargs: Any
) -> ScrollSynchronizer:
    """Synchronizer with buckets for ``days`` and one completed render pass."""
    sync = ScrollSynchronizer(viewport, settle_delay=0.01, render_wait=0.05, **kwargs)
    sync.set_buckets([DayBucket(day=day) for day in days])
    if rendered:
        viewport.rendered.update(days)
    sync.render_signal.mark_rendered()
    return sync


class TestSelectRenderedDay:
    @pytest.mark.asyncio
    async def test_scrolls_and_returns_to_idle(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [FEB_27, MAR_10])

        task = sync.request_select_date(MAR_10)

        # Selection is applied before any scrolling happens
        assert sync.state.selected_date == MAR_10
        assert sync.state.phase is SyncPhase.PROGRAMMATIC_SCROLLING
        assert sync.state.is_programmatic_scroll

        await task

        state = sync.state
        assert state.phase is SyncPhase.IDLE
        assert not state.is_programmatic_scroll
        assert state.visible_date == MAR_10
        assert state.shown_date == MAR_10
        assert state.pending_message is None
        assert viewport.scrolled == [MAR_10]

    @pytest.mark.asyncio
    async def test_timestamp_request_uses_calendar_day(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10])

        await sync.request_select_date(utc(2025, 3, 10, 23, 30))

        assert sync.state.selected_date == MAR_10

    @pytest.mark.asyncio
    async def test_async_scroll_into_view_is_awaited(self) -> None:
        class AsyncViewport(FakeViewport):
            async def scroll_into_view(self, element: date) -> None:  # type: ignore[override]
                await asyncio.sleep(0)
                self.scrolled.append(element)

        viewport = AsyncViewport()
        sync = _synchronizer(viewport, [MAR_10])

        await sync.request_select_date(MAR_10)

        assert viewport.scrolled == [MAR_10]
        assert sync.state.visible_date == MAR_10


class TestRenderRetry:
    @pytest.mark.asyncio
    async def test_waits_for_render_then_scrolls(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10], rendered=False)
        sync.render_wait = 5.0

        task = sync.request_select_date(MAR_10)
        await asyncio.sleep(0)

        assert sync.state.pending_message == "Loading items for March 10, 2025..."
        assert viewport.scrolled == []

        viewport.rendered.add(MAR_10)
        sync.render_signal.mark_rendered()
        await asyncio.wait_for(task, timeout=1.0)

        assert viewport.scrolled == [MAR_10]
        assert sync.state.phase is SyncPhase.IDLE
        assert sync.state.pending_message is None

    @pytest.mark.asyncio
    async def test_first_load_waits_for_buckets(self, viewport: FakeViewport) -> None:
        sync = ScrollSynchronizer(viewport, settle_delay=0.01, render_wait=5.0)

        task = sync.request_select_date(MAR_10)
        await asyncio.sleep(0)
        assert sync.state.pending_message == "Loading items for March 10, 2025..."

        sync.set_buckets([DayBucket(day=MAR_10)])
        viewport.rendered.add(MAR_10)
        sync.render_signal.mark_rendered()
        await asyncio.wait_for(task, timeout=1.0)

        assert viewport.scrolled == [MAR_10]
        assert sync.state.visible_date == MAR_10

    @pytest.mark.asyncio
    async def test_retry_exhausted_falls_back(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [date(2025, 3, 8), MAR_10], rendered=False)
        viewport.rendered.add(date(2025, 3, 8))

        await sync.request_select_date(MAR_10)

        state = sync.state
        assert viewport.scrolled == [date(2025, 3, 8)]
        assert state.visible_date == MAR_10
        assert state.shown_date == date(2025, 3, 8)
        assert state.phase is SyncPhase.IDLE


class TestNoMatchFallback:
    @pytest.mark.asyncio
    async def test_scrolls_to_nearest_but_keeps_requested_date(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [FEB_27, MAR_10])

        await sync.request_select_date(MAR_01)

        state = sync.state
        assert viewport.scrolled == [FEB_27]
        assert state.selected_date == MAR_01
        assert state.visible_date == MAR_01
        assert state.shown_date == FEB_27
        assert state.phase is SyncPhase.IDLE
        assert state.pending_message is not None
        assert "March 1, 2025" in state.pending_message
        assert "February 27, 2025" in state.pending_message

    @pytest.mark.asyncio
    async def test_passes_through_fallback_phase(self, viewport: FakeViewport) -> None:
        phases: list[SyncPhase] = []
        sync = _synchronizer(
            viewport, [FEB_27, MAR_10], on_change=lambda state: phases.append(state.phase)
        )

        await sync.request_select_date(MAR_01)

        assert phases[0] is SyncPhase.PROGRAMMATIC_SCROLLING
        assert SyncPhase.NO_MATCH_FALLBACK in phases
        assert phases[-1] is SyncPhase.IDLE

    @pytest.mark.asyncio
    async def test_no_buckets_at_all(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [])

        await sync.request_select_date(MAR_01)

        state = sync.state
        assert viewport.scrolled == []
        assert state.phase is SyncPhase.IDLE
        assert state.visible_date == MAR_01
        assert state.shown_date is None
        assert state.pending_message == "No items on March 1, 2025 or any other date."

    @pytest.mark.asyncio
    async def test_nearest_not_rendered(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [FEB_27], rendered=False)

        await sync.request_select_date(MAR_01)

        state = sync.state
        assert viewport.scrolled == []
        assert state.phase is SyncPhase.IDLE
        assert state.shown_date is None
        assert state.pending_message is not None
        assert "March 1, 2025" in state.pending_message
        assert "February 27, 2025" in state.pending_message

    @pytest.mark.asyncio
    async def test_viewport_failures_are_not_raised(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10, MAR_12])
        viewport.fail_lookups = True

        await sync.request_select_date(MAR_10)

        state = sync.state
        assert state.phase is SyncPhase.IDLE
        assert state.visible_date == MAR_10
        assert viewport.scrolled == []

    @pytest.mark.asyncio
    async def test_failed_scroll_is_retried_on_same_day(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10, MAR_12])
        viewport.fail_scrolls = 1

        await sync.request_select_date(MAR_10)

        state = sync.state
        assert viewport.scrolled == [MAR_10]
        assert state.visible_date == MAR_10
        assert state.shown_date == MAR_10
        assert state.pending_message is None
        assert state.phase is SyncPhase.IDLE

    @pytest.mark.asyncio
    async def test_unreachable_day_is_not_reported_empty(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10, MAR_12])
        viewport.fail_scrolls = 2

        await sync.request_select_date(MAR_10)

        state = sync.state
        assert viewport.scrolled == [MAR_12]
        assert state.visible_date == MAR_10
        assert state.shown_date == MAR_12
        assert state.pending_message == (
            "Could not scroll to March 10, 2025. Showing nearest date: March 12, 2025."
        )

    @pytest.mark.asyncio
    async def test_unreachable_only_day(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10])
        viewport.fail_scrolls = 2

        await sync.request_select_date(MAR_10)

        assert viewport.scrolled == []
        assert sync.state.pending_message == "Could not scroll to March 10, 2025."


class TestUserScroll:
    @pytest.mark.asyncio
    async def test_ignored_while_programmatic(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10, MAR_12])

        task = sync.request_select_date(MAR_10)
        viewport.top_day = MAR_12

        assert sync.on_user_scroll() is False
        assert sync.state.visible_date is None

        await task
        assert sync.state.visible_date == MAR_10

    @pytest.mark.asyncio
    async def test_updates_visible_date_when_idle(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10, MAR_12])
        await sync.request_select_date(MAR_10)

        viewport.top_day = MAR_12

        assert sync.on_user_scroll() is True
        assert sync.state.visible_date == MAR_12
        assert sync.state.selected_date == MAR_10

    def test_no_top_day_is_ignored(self, viewport: FakeViewport) -> None:
        sync = ScrollSynchronizer(viewport)
        assert sync.on_user_scroll() is False


class TestSupersede:
    @pytest.mark.asyncio
    async def test_new_request_cancels_pending_one(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [FEB_27, MAR_10])

        first = sync.request_select_date(MAR_10)
        second = sync.request_select_date(FEB_27)
        await second

        with pytest.raises(asyncio.CancelledError):
            await first
        assert viewport.scrolled == [FEB_27]
        assert sync.state.visible_date == FEB_27

    @pytest.mark.asyncio
    async def test_stale_request_never_lands_after_newer_one(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [FEB_27, MAR_10])
        sync.settle_delay = 0.2

        first = sync.request_select_date(MAR_10)
        await asyncio.sleep(0)
        # The first request has scrolled and is settling
        assert viewport.scrolled == [MAR_10]

        second = sync.request_select_date(FEB_27)
        await second

        assert first.cancelled()
        assert viewport.scrolled == [MAR_10, FEB_27]
        assert sync.state.selected_date == FEB_27
        assert sync.state.visible_date == FEB_27


class TestItemClickAndClose:
    @pytest.mark.asyncio
    async def test_item_click_selects_item_day(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10])

        task = sync.on_item_click(make_item("e", utc(2025, 3, 10, 15)))

        assert task is not None
        await task
        assert sync.state.selected_date == MAR_10

    def test_undated_item_click_is_ignored(self, viewport: FakeViewport) -> None:
        sync = ScrollSynchronizer(viewport)
        assert sync.on_item_click(make_item("t", None)) is None

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_work(self, viewport: FakeViewport) -> None:
        sync = _synchronizer(viewport, [MAR_10])

        task = sync.request_select_date(MAR_10)
        sync.close()

        with pytest.raises(asyncio.CancelledError):
            await task
        with pytest.raises(RuntimeError):
            sync.request_select_date(MAR_10)

    @pytest.mark.asyncio
    async def test_on_change_receives_snapshots(self, viewport: FakeViewport) -> None:
        snapshots: list[SyncState] = []
        sync = _synchronizer(viewport, [MAR_10], on_change=snapshots.append)

        await sync.request_select_date(MAR_10)

        assert snapshots[0].selected_date == MAR_10
        assert snapshots[0].visible_date is None
        assert snapshots[-1].visible_date == MAR_10
        # Snapshots are copies, not the live state
        snapshots[-1].visible_date = FEB_27
        assert sync.state.visible_date == MAR_10


class TestRenderSignal:
    @pytest.mark.asyncio
    async def test_wait_returns_immediately_for_newer_generation(self) -> None:
        signal = RenderSignal()
        signal.mark_rendered()

        assert await signal.wait_for_render(after=0, timeout=0.01) is True

    @pytest.mark.asyncio
    async def test_wait_times_out(self) -> None:
        signal = RenderSignal()
        assert await signal.wait_for_render(after=0, timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_wait_wakes_on_mark(self) -> None:
        signal = RenderSignal()

        waiter = asyncio.ensure_future(signal.wait_for_render(after=0, timeout=1.0))
        await asyncio.sleep(0)
        signal.mark_rendered()

        assert await waiter is True
        assert signal.generation == 1
