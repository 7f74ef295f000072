"""Exception hierarchy for the guide writer pipeline.

``ItemError`` and its subclasses are terminal for the work item being
processed only; the orchestrator marks the item failed and moves on.
Everything else derived from ``GuideWriterError`` stops the batch.
"""
from __future__ import annotations


class GuideWriterError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(GuideWriterError):
    """A required credential or setting is missing."""


class QueueError(GuideWriterError):
    """The work queue could not be read or rewritten."""


class QueueFileMissingError(QueueError):
    pass


class ItemError(GuideWriterError):
    """A stage failed in a way that aborts the current work item."""

    stage: str = "pipeline"


class ResearchServiceError(ItemError):
    stage = "research"

    def __init__(self, message: str, *, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ResearchTaskFailedError(ItemError):
    stage = "research"

    def __init__(self, research_id: str, status: str):
        super().__init__(f"Research task {status}: {research_id}")
        self.research_id = research_id
        self.status = status


class ResearchTimeoutError(ItemError):
    stage = "research"

    def __init__(self, research_id: str, waited_seconds: float):
        super().__init__(
            f"Research task {research_id} timed out after {waited_seconds:g} seconds"
        )
        self.research_id = research_id
        self.waited_seconds = waited_seconds


class GenerationError(ItemError):
    stage = "generation"


class ExtractionError(ItemError):
    stage = "extract"


class ValidationStageError(ItemError):
    stage = "validate"


class CurationError(ItemError):
    stage = "curate"


class CompositionError(ItemError):
    stage = "compose"
