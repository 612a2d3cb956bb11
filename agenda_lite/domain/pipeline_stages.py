"""Concrete pipeline stages for agenda_lite.

Each stage wraps one calendar-layer function in the ItemProcessor protocol so
the engine can compose them into an ItemProcessingPipeline.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from agenda_lite.calendar.bucketer import bucket_items
from agenda_lite.calendar.models import CalendarItem
from agenda_lite.calendar.occurrence_generator import OccurrenceExpander, default_horizon
from agenda_lite.domain.pipeline import ProcessingContext, ProcessingResult

if TYPE_CHECKING:
    from agenda_lite.domain.pipeline import ItemProcessingPipeline

logger = logging.getLogger(__name__)


class RecurrenceExpansionStage:
    """Append synthetic occurrences for every item carrying a recurrence rule."""

    def __init__(self, expander: Optional[OccurrenceExpander] = None) -> None:
        """Initialize expansion stage.

        Args:
            expander: Configured expander; built from context settings when omitted
        """
        self._name = "RecurrenceExpansion"
        self.expander = expander

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Expand recurring items in ``context.items``.

        Args:
            context: Processing context with items

        Returns:
            Result with originals followed by occurrences
        """
        result = ProcessingResult(stage_name=self.name, items_in=len(context.items))

        expander = self.expander or OccurrenceExpander(context)
        if context.window_end is None:
            context.window_end = default_horizon(context.now, expander.horizon_months)

        try:
            context.items = await expander.expand_to_list(
                context.items, context.now, context.window_end
            )
        except Exception as e:
            result.add_error(f"Recurrence expansion failed: {e}")
            logger.exception("Expansion stage failed")
            return result

        result.items = context.items
        result.items_out = len(context.items)
        result.metadata["occurrences_generated"] = result.items_out - result.items_in

        if result.items_out > result.items_in:
            logger.debug(
                "Recurrence expansion: %s -> %s items (%s occurrences generated)",
                result.items_in,
                result.items_out,
                result.items_out - result.items_in,
            )
        return result


class DeduplicationStage:
    """Drop items whose id was already seen.

    Stored items come before generated occurrences in the context, so a stored
    instance wins over an occurrence generated for the same day.
    """

    def __init__(self) -> None:
        """Initialize deduplication stage."""
        self._name = "Deduplication"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, items_in=len(context.items))

        unique: dict[str, CalendarItem] = {}
        for item in context.items:
            unique.setdefault(item.id, item)
        context.items = list(unique.values())

        result.items = context.items
        result.items_out = len(context.items)
        if result.items_out < result.items_in:
            logger.debug(
                "Deduplication: %s -> %s items (%s duplicates removed)",
                result.items_in,
                result.items_out,
                result.items_in - result.items_out,
            )
        return result


class DayBucketingStage:
    """Group the processed items into day buckets."""

    def __init__(self) -> None:
        """Initialize bucketing stage."""
        self._name = "DayBucketing"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Populate ``context.buckets`` from ``context.items``.

        Args:
            context: Processing context with items

        Returns:
            Result carrying the buckets
        """
        result = ProcessingResult(stage_name=self.name, items_in=len(context.items))

        try:
            context.buckets = bucket_items(context.items)
        except (TypeError, ValueError) as e:
            result.add_error(f"Bucketing failed: {e}")
            logger.exception("Bucketing stage failed")
            return result

        result.items = context.items
        result.items_out = len(context.items)
        result.buckets = context.buckets
        result.metadata["bucket_count"] = len(context.buckets)
        logger.debug("Bucketed %d items into %d days", result.items_out, len(context.buckets))
        return result


def create_agenda_pipeline(settings: Any = None) -> ItemProcessingPipeline:
    """Create the standard expansion -> dedupe -> bucketing pipeline.

    Args:
        settings: Object with expansion settings (e.g. ``Config``), optional

    Returns:
        Configured pipeline ready for processing
    """
    from agenda_lite.domain.pipeline import ItemProcessingPipeline

    return (
        ItemProcessingPipeline()
        .add_stage(RecurrenceExpansionStage(OccurrenceExpander(settings)))
        .add_stage(DeduplicationStage())
        .add_stage(DayBucketingStage())
    )
