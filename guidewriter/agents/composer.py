from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from guidewriter.agents.base import BaseAgent
from guidewriter.config import settings
from guidewriter.errors import CompositionError
from guidewriter.models.guide import (
    ROUTE_LINK_LABEL,
    CuratedSet,
    Document,
    GuideSection,
    QuotaSchema,
    default_quota_schema,
)
from guidewriter.services.prompt_store import render_prompt
from guidewriter.tools.payloads import extract_json_object, strip_code_fence

ENTRY_FORMAT = (
    "- **Route Name** (Grade, Style, Location)\n"
    f"  [{ROUTE_LINK_LABEL}](link)"
)


class FramingPayload(BaseModel):
    title: str
    introduction: str
    section_intros: dict[str, str] = Field(default_factory=dict)

    @field_validator("title", "introduction")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ComposerAgent(BaseAgent):
    """Two generation calls per guide: write the draft, then review it."""

    name = "composer"
    system_prompt_key = "composer.system_prompt"

    def __init__(
        self,
        model: str | None = None,
        client: Any | None = None,
        *,
        schema: QuotaSchema | None = None,
        write_max_tokens: int | None = None,
        review_max_tokens: int | None = None,
    ):
        super().__init__(model=model, client=client)
        self.schema = schema or default_quota_schema()
        self.write_max_tokens = write_max_tokens or settings.compose_max_tokens
        self.review_max_tokens = review_max_tokens or settings.review_max_tokens

    def _sections_json(self, curated: CuratedSet) -> str:
        sections = {
            quota.category.value: {
                "heading": quota.heading,
                "routes": [f"{r.name} ({r.grade}, {r.style})" for r in curated.routes(quota.category)],
            }
            for quota in self.schema.categories
            if curated.routes(quota.category)
        }
        return json.dumps(sections, indent=2, ensure_ascii=False)

    async def write(self, area_name: str, curated: CuratedSet) -> Document:
        if not curated.non_empty():
            raise CompositionError(f"No curated routes to write about for {area_name}")

        prompt = render_prompt(
            "composer.write",
            area_name=area_name,
            sections_json=self._sections_json(curated),
        )
        raw = await self.complete(prompt, max_tokens=self.write_max_tokens, caller="composer.write")
        try:
            framing = FramingPayload.model_validate(extract_json_object(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise CompositionError(f"Writer returned unusable framing for {area_name}: {exc}") from exc

        return self.assemble(curated, framing)

    def assemble(self, curated: CuratedSet, framing: FramingPayload) -> Document:
        sections: list[GuideSection] = []
        for quota in self.schema.categories:
            routes = curated.routes(quota.category)
            if not routes:
                continue
            intro = framing.section_intros.get(quota.category.value, "").strip()
            sections.append(
                GuideSection(
                    category=quota.category,
                    heading=quota.heading,
                    intro=intro or f"Here are the best {quota.description} in the area.",
                    routes=list(routes),
                )
            )
        return Document(title=framing.title, introduction=framing.introduction, sections=sections)

    async def review(self, area_name: str, draft: Document, curated: CuratedSet) -> Document:
        total = self.schema.total
        prompt = render_prompt(
            "composer.review",
            area_name=area_name,
            draft=draft.render(),
            curated_json=json.dumps(curated.to_dict(), indent=2, ensure_ascii=False),
            total_min=total.min,
            total_max=total.max,
            entry_format=ENTRY_FORMAT,
        )
        raw = await self.complete(prompt, max_tokens=self.review_max_tokens, caller="composer.review")
        reviewed = strip_code_fence(raw)
        if not reviewed:
            logger.warning(f"Review pass for {area_name} returned nothing; keeping the draft")
            return draft

        draft.reviewed_body = reviewed.rstrip() + "\n"
        return draft

    async def compose(self, area_name: str, curated: CuratedSet) -> Document:
        draft = await self.write(area_name, curated)
        logger.info(f"Draft for {area_name}: {len(draft.sections)} sections, {draft.entry_count()} routes")
        return await self.review(area_name, draft, curated)
