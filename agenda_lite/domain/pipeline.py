"""Item processing pipeline for agenda_lite.

Raw items pass through a fixed sequence of stages before rendering:
recurrence expansion, de-duplication, then day bucketing. Each stage is small
and testable on its own.

Usage:
    pipeline = ItemProcessingPipeline()
    pipeline.add_stage(RecurrenceExpansionStage())
    pipeline.add_stage(DayBucketingStage())

    context = ProcessingContext(items=items)
    result = await pipeline.process(context)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from agenda_lite.calendar.models import CalendarItem, DayBucket

logger = logging.getLogger(__name__)


@dataclass
class ProcessingContext:
    """Context passed between pipeline stages.

    Stages read from and write to this context.
    """

    # Configuration
    horizon_months: int = 12
    max_occurrences_per_rule: int = 500

    # Time context
    now: Optional[datetime] = None
    window_end: Optional[datetime] = None

    # Processing state (modified by stages)
    items: list[CalendarItem] = field(default_factory=list)
    buckets: list[DayBucket] = field(default_factory=list)


@dataclass
class ProcessingResult:
    """Result from a pipeline stage or complete pipeline execution."""

    success: bool = True
    items: list[CalendarItem] = field(default_factory=list)
    buckets: list[DayBucket] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    # Statistics
    items_in: int = 0
    items_out: int = 0
    stage_name: str = ""

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)
        logger.warning("[%s] %s", self.stage_name, message)

    def add_error(self, message: str) -> None:
        """Add an error message and mark as failed."""
        self.errors.append(message)
        self.success = False
        logger.error("[%s] %s", self.stage_name, message)


class ItemProcessor(Protocol):
    """Protocol for a single stage in the item processing pipeline."""

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Process items according to this stage's responsibility.

        Args:
            context: Processing context with items and configuration

        Returns:
            Result with processed items and any errors/warnings
        """
        ...

    @property
    def name(self) -> str:
        """Name of this processing stage for logging."""
        ...


class ItemProcessingPipeline:
    """Runs stages in sequence over a shared ProcessingContext.

    A stage that reports failure or raises stops the pipeline; the aggregated
    result then carries the error and ``success=False``.
    """

    def __init__(self) -> None:
        """Initialize empty pipeline."""
        self.stages: list[ItemProcessor] = []

    def add_stage(self, stage: ItemProcessor) -> ItemProcessingPipeline:
        """Add a processing stage to the pipeline (builder pattern).

        Args:
            stage: Item processor to add

        Returns:
            Self for method chaining
        """
        self.stages.append(stage)
        logger.debug("Added stage to pipeline: %s", stage.name)
        return self

    async def process(self, context: ProcessingContext) -> ProcessingResult:
        """Execute all pipeline stages in sequence.

        Args:
            context: Processing context with initial state

        Returns:
            Aggregated result from all stages
        """
        logger.debug("Starting pipeline with %d stages", len(self.stages))

        aggregated_result = ProcessingResult(
            stage_name="Pipeline",
            items_in=len(context.items),
        )

        for i, stage in enumerate(self.stages):
            stage_num = i + 1
            logger.debug("Executing stage %d/%d: %s", stage_num, len(self.stages), stage.name)

            try:
                stage_result = await stage.process(context)
            except Exception as e:
                aggregated_result.add_error(f"Stage {stage.name} raised exception: {e}")
                logger.exception("Stage %s failed with exception", stage.name)
                return aggregated_result

            logger.debug(
                "Stage %s/%s (%s) completed: success=%s, items_in=%s, items_out=%s",
                stage_num,
                len(self.stages),
                stage.name,
                stage_result.success,
                stage_result.items_in,
                stage_result.items_out,
            )

            aggregated_result.warnings.extend(stage_result.warnings)
            aggregated_result.errors.extend(stage_result.errors)

            if not stage_result.success:
                aggregated_result.success = False
                logger.error(
                    "Pipeline stopped at stage %s (%s) due to failure", stage_num, stage.name
                )
                return aggregated_result

            aggregated_result.metadata.update(stage_result.metadata)

        aggregated_result.success = True
        aggregated_result.items = context.items
        aggregated_result.buckets = context.buckets
        aggregated_result.items_out = len(context.items)

        logger.debug(
            "Pipeline completed: %s items, %s buckets, %s warnings",
            aggregated_result.items_out,
            len(aggregated_result.buckets),
            len(aggregated_result.warnings),
        )
        return aggregated_result
