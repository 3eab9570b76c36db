"""Event processing pipeline architecture for calendarcard_lite.

Raw records flow one way through a fixed sequence of synchronous stages:

    raw → deduplicated → normalized → filtered → expanded → sorted → grouped → limited

Usage:
    pipeline = EventProcessingPipeline()
    pipeline.add_stage(DeduplicationStage())
    pipeline.add_stage(NormalizationStage())

    context = ProcessingContext(config=config, now=clock.now(), raw_events=raw)
    result = pipeline.process(context)
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from calendarcard_lite.config_loader import CardConfig
from calendarcard_lite.core.temporal import add_days, start_of_day

from .models import DayGroup, Event, RawEvent

logger = logging.getLogger(__name__)


@dataclass
class ProcessingContext:
    """Context passed between pipeline stages.

    Holds the run's configuration and its single "now", plus the data each
    stage reads and replaces.
    """

    # Configuration
    config: CardConfig
    now: datetime.datetime

    # Processing state (replaced by stages)
    raw_events: list[RawEvent] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    day_groups: list[DayGroup] = field(default_factory=list)

    # Stage-specific data (extensible)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def tz(self) -> datetime.tzinfo:
        tzinfo = self.now.tzinfo
        if tzinfo is None:
            raise ValueError("ProcessingContext.now must be timezone-aware")
        return tzinfo

    @property
    def today(self) -> datetime.datetime:
        """Start of the run's current day."""
        return start_of_day(self.now)

    @property
    def window_end(self) -> datetime.datetime:
        """Exclusive end of the display window."""
        return add_days(self.today, self.config.number_of_days)


@dataclass
class ProcessingResult:
    """Result from a pipeline stage or complete pipeline execution.

    Contains processed events plus error/warning information for observability.
    """

    success: bool = True
    events: list[Event] = field(default_factory=list)
    day_groups: list[DayGroup] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    # Statistics
    events_in: int = 0  # Items received by stage
    events_out: int = 0  # Items emitted by stage
    events_filtered: int = 0  # Items removed by stage
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


class EventProcessor(Protocol):
    """Protocol for a single stage in the event processing pipeline.

    Each stage:
    - Receives a ProcessingContext
    - Performs its processing task
    - Returns a ProcessingResult with counts and any errors/warnings
    - Replaces the context data it owns for downstream stages
    """

    def process(self, context: ProcessingContext) -> ProcessingResult:
        """Process events according to this stage's responsibility."""
        ...

    @property
    def name(self) -> str:
        """Name of this processing stage for logging."""
        ...


class EventProcessingPipeline:
    """Runs processing stages in sequence over one ProcessingContext.

    A stage that reports failure, or raises, stops the pipeline; the
    aggregated result then carries the stage errors and `success=False`.
    """

    def __init__(self) -> None:
        """Initialize empty pipeline."""
        self.stages: list[EventProcessor] = []

    def add_stage(self, stage: EventProcessor) -> EventProcessingPipeline:
        """Add a processing stage to the pipeline (builder pattern).

        Returns:
            Self for method chaining
        """
        self.stages.append(stage)
        logger.debug("Added stage to pipeline: %s", stage.name)
        return self

    def process(self, context: ProcessingContext) -> ProcessingResult:
        """Execute all pipeline stages in sequence.

        Args:
            context: Processing context with initial state

        Returns:
            Aggregated result from all stages
        """
        logger.debug("Starting pipeline with %d stages", len(self.stages))

        aggregated_result = ProcessingResult(
            stage_name="Pipeline",
            events_in=len(context.raw_events),
        )

        for i, stage in enumerate(self.stages):
            stage_num = i + 1
            logger.debug("Executing stage %d/%d: %s", stage_num, len(self.stages), stage.name)

            try:
                stage_result = stage.process(context)
            except Exception as e:
                aggregated_result.add_error(f"Stage {stage.name} raised exception: {e}")
                logger.exception("Stage %s failed with exception", stage.name)
                return aggregated_result

            logger.debug(
                "Stage %s/%s (%s) completed: success=%s, in=%s, out=%s, warnings=%s, errors=%s",
                stage_num,
                len(self.stages),
                stage.name,
                stage_result.success,
                stage_result.events_in,
                stage_result.events_out,
                len(stage_result.warnings),
                len(stage_result.errors),
            )

            aggregated_result.warnings.extend(stage_result.warnings)
            aggregated_result.errors.extend(stage_result.errors)
            aggregated_result.metadata[stage.name] = {
                "events_in": stage_result.events_in,
                "events_out": stage_result.events_out,
                "events_filtered": stage_result.events_filtered,
                **stage_result.metadata,
            }

            if not stage_result.success:
                aggregated_result.success = False
                logger.error(
                    "Pipeline stopped at stage %s (%s) due to failure", stage_num, stage.name
                )
                return aggregated_result

        aggregated_result.success = True
        aggregated_result.events = context.events
        aggregated_result.day_groups = context.day_groups
        if context.day_groups:
            aggregated_result.events_out = sum(len(group.events) for group in context.day_groups)
        else:
            aggregated_result.events_out = len(context.events)

        logger.debug(
            "Pipeline completed: %s raw events → %s events in %s days, %s warnings",
            aggregated_result.events_in,
            aggregated_result.events_out,
            len(context.day_groups),
            len(aggregated_result.warnings),
        )
        return aggregated_result

    def clear_stages(self) -> None:
        """Remove all stages from the pipeline."""
        self.stages.clear()

    def __repr__(self) -> str:
        """String representation of pipeline."""
        stage_names = [stage.name for stage in self.stages]
        return f"EventProcessingPipeline(stages={stage_names})"
