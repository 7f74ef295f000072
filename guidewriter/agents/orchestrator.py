from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

from loguru import logger

from guidewriter.agents.composer import ComposerAgent
from guidewriter.agents.curator import CurationResult, CuratorAgent
from guidewriter.agents.extractor import ExtractorAgent
from guidewriter.agents.link_validator import LinkValidator
from guidewriter.config import settings
from guidewriter.errors import CurationError, ExtractionError, ItemError, ValidationStageError
from guidewriter.models.routes import ValidatedRoute
from guidewriter.services import logger as log_service
from guidewriter.services.publisher import Publisher
from guidewriter.services.work_queue import WorkItem, WorkQueue
from guidewriter.tools.exa_research import ExaResearchClient

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class ItemOutcome:
    area: str
    success: bool
    path: Path | None = None
    error: str | None = None
    route_count: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class BatchSummary:
    outcomes: list[ItemOutcome] = field(default_factory=list)
    runtime_ms: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)


class GuideOrchestrator:
    """Runs the guide pipeline over the work queue, one area at a time.

    Flow per area:
      1. Research task (create, poll, read output)
      2. Extract candidate routes
      3. Validate route links
      4. Curate into categories (one compensating retry on shortfall)
      5. Write then review the guide
      6. Publish the file and mark the queue line
    """

    def __init__(
        self,
        queue: WorkQueue,
        *,
        research: ExaResearchClient | None = None,
        extractor: ExtractorAgent | None = None,
        validator: LinkValidator | None = None,
        curator: CuratorAgent | None = None,
        composer: ComposerAgent | None = None,
        publisher: Publisher | None = None,
        model: str | None = None,
        item_delay: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.queue = queue
        self.research = research or ExaResearchClient()
        self.extractor = extractor or ExtractorAgent(model=model)
        self.validator = validator or LinkValidator()
        self.curator = curator or CuratorAgent(model=model)
        self.composer = composer or ComposerAgent(model=model)
        self.publisher = publisher or Publisher()
        self.item_delay = max(
            float(item_delay if item_delay is not None else settings.item_delay_seconds), 0.0
        )
        self._sleep = sleep

    async def run(self, max_items: int | None = None) -> BatchSummary:
        """Process pending items until the queue is exhausted (or ``max_items`` ran)."""
        summary = BatchSummary()
        t0 = time.monotonic()
        log_service.log_event("batch_started", f"Processing queue {self.queue.path}", max_items=max_items)

        while max_items is None or len(summary.outcomes) < max_items:
            item = self.queue.next_pending()
            if item is None:
                logger.info("No pending areas left in the queue")
                break
            if summary.outcomes and self.item_delay:
                await self._sleep(self.item_delay)

            outcome = await self.process_item(item)
            summary.outcomes.append(outcome)

        summary.runtime_ms = int((time.monotonic() - t0) * 1000)
        log_service.log_event(
            "batch_complete",
            f"Batch complete: {summary.succeeded} succeeded, {summary.failed} failed",
            succeeded=summary.succeeded,
            failed=summary.failed,
            runtime_ms=summary.runtime_ms,
        )
        return summary

    async def process_item(self, item: WorkItem) -> ItemOutcome:
        area = item.text
        logger.info(f"Processing area: {area}")
        try:
            outcome = await self._run_stages(area)
        except ItemError as e:
            logger.error(f"Area {area!r} failed in {e.stage}: {type(e).__name__}: {e}")
            log_service.log_pipeline_step(area, e.stage, "failed", {"error": str(e)})
            self.queue.mark_failed(item, f"{type(e).__name__}: {e}")
            return ItemOutcome(area=area, success=False, error=str(e))
        except Exception as e:
            logger.exception(f"Area {area!r} failed with unexpected error: {e}")
            self.queue.mark_failed(item, f"{type(e).__name__}: {e}")
            return ItemOutcome(area=area, success=False, error=str(e))

        self.queue.mark_done(item)
        logger.info(f"Successfully processed {area!r} -> {outcome.path}")
        return outcome

    async def _run_stages(self, area: str) -> ItemOutcome:
        research_text = await self.research.research(area)
        log_service.log_pipeline_step(area, "research", "completed", {"chars": len(research_text)})

        candidates = await self.extractor.extract(area, research_text)
        if not candidates:
            raise ExtractionError(f"No valid route records extracted for {area}")
        log_service.log_pipeline_step(area, "extract", "completed", {"candidates": len(candidates)})

        routes = await self.validator.validate(candidates)
        if not routes:
            raise ValidationStageError(f"None of {len(candidates)} route links for {area} validated")
        log_service.log_pipeline_step(
            area, "validate", "completed", {"valid": len(routes), "candidates": len(candidates)}
        )

        curation = await self.curate(area, routes)
        if curation.total == 0:
            raise CurationError(f"Curation selected no routes for {area}")
        log_service.log_pipeline_step(
            area,
            "curate",
            "completed",
            {
                "phase": curation.phase,
                "total": curation.total,
                "counts": {c.value: n for c, n in curation.curated.counts().items()},
            },
        )

        document = await self.composer.compose(area, curation.curated)
        log_service.log_pipeline_step(area, "compose", "completed", {"sections": len(document.sections)})

        path = self.publisher.publish(area, document, curation.curated)
        return ItemOutcome(
            area=area,
            success=True,
            path=path,
            route_count=curation.total,
            warnings=list(curation.warnings),
        )

    async def curate(self, area: str, routes: list[ValidatedRoute]) -> CurationResult:
        first = await self.curator.attempt(area, routes)
        retry: CurationResult | None = None
        if self.curator.needs_compensation(first, len(routes)):
            logger.info(
                f"Curated total {first.total} for {area} is below the minimum; retrying once"
            )
            retry = await self.curator.compensate(area, routes, first)

        result = self.curator.settle(first, retry)
        for warning in result.warnings:
            logger.warning(f"Curation warning for {area}: {warning}")
        return result
