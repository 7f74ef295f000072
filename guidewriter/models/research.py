from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


class ResearchStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ResearchStatus.COMPLETED, ResearchStatus.CANCELED, ResearchStatus.FAILED)


class ResearchTask(BaseModel):
    """Research task as reported by the research service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    research_id: str = Field(alias="researchId")
    status: ResearchStatus = ResearchStatus.PENDING
    model: str | None = None
    instructions: str | None = None
    output: Any = None
    created_at: int | float | None = Field(default=None, alias="createdAt")
    completed_at: int | float | None = Field(default=None, alias="completedAt")


@dataclass(frozen=True, slots=True)
class RawText:
    text: str


@dataclass(frozen=True, slots=True)
class RawObject:
    fields: dict[str, Any] = field(default_factory=dict)


ResearchOutput = RawText | RawObject

# Probed in order; "result" may also hold structured data.
TEXT_FIELDS = ("markdown", "text", "content", "result")


def parse_output(raw: Any) -> ResearchOutput | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return RawText(raw)
    if isinstance(raw, dict):
        return RawObject(dict(raw))
    return RawText(json.dumps(raw, indent=2, ensure_ascii=False, default=str))


def output_to_text(output: ResearchOutput) -> str:
    """Best-effort text from a research payload; never returns blank for a non-empty object."""
    if isinstance(output, RawText):
        return output.text

    fields = output.fields
    for name in TEXT_FIELDS:
        value = fields.get(name)
        if isinstance(value, str) and value.strip():
            return value
        if name == "result" and value not in (None, "", [], {}):
            return json.dumps(value, indent=2, ensure_ascii=False, default=str)

    for name, value in fields.items():
        if isinstance(value, str) and value.strip():
            logger.debug(f"Research output used fallback field {name!r}")
            return value

    logger.warning(
        f"Research output has unknown structure (keys: {sorted(fields)}); using serialized payload"
    )
    return json.dumps(fields, indent=2, ensure_ascii=False, default=str)
