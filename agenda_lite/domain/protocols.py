"""Protocol definitions for the engine's external collaborators.

The engine never touches a real UI or database; it talks to these interfaces,
which tests satisfy with small fakes.
"""

from __future__ import annotations

import datetime
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, Optional, Protocol, Union

if TYPE_CHECKING:
    from agenda_lite.domain.scroll_sync import SyncState


class DayViewport(Protocol):
    """Protocol for the rendered chronological list."""

    def find_day_element(self, day: datetime.date) -> Optional[Any]:
        """Look up the rendered element for a day.

        Args:
            day: Calendar day (matches the bucket's ``day_key``)

        Returns:
            Opaque element handle, or None if the day is not rendered
        """
        ...

    def scroll_into_view(self, element: Any) -> Union[None, Awaitable[None]]:
        """Scroll an element returned by ``find_day_element`` into view.

        May be a plain method or a coroutine function.
        """
        ...

    def top_visible_day(self) -> Optional[datetime.date]:
        """Return the day whose element is currently at the top of the viewport."""
        ...


class ItemStore(Protocol):
    """Protocol for the persistence collaborator."""

    async def update_item_due_date(
        self, item_id: str, due: Optional[datetime.datetime]
    ) -> None:
        """Persist a new due timestamp.

        Args:
            item_id: Item identifier
            due: New timestamp, or None to clear the due date ("Someday")

        Raises:
            Exception: Any failure; the engine rolls back its tentative placement
        """
        ...


class SyncStateListener(Protocol):
    """Protocol for SyncState change callbacks."""

    def __call__(self, state: SyncState) -> None:
        """Receive a snapshot of the state after a transition."""
        ...
