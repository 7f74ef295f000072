from __future__ import annotations

import json
from typing import Any, get_args

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from guidewriter.agents.base import BaseAgent
from guidewriter.config import settings
from guidewriter.models.routes import CandidateRoute, RouteStyle
from guidewriter.services.prompt_store import render_prompt
from guidewriter.tools.payloads import extract_json_value

_ROUTE_LIST = TypeAdapter(list[CandidateRoute])


class ExtractorAgent(BaseAgent):
    """Turns research notes into schema-checked candidate routes."""

    name = "extractor"
    system_prompt_key = "extractor.system_prompt"

    def __init__(
        self,
        model: str | None = None,
        client: Any | None = None,
        *,
        max_tokens: int | None = None,
        max_research_chars: int | None = None,
    ):
        super().__init__(model=model, client=client)
        self.max_tokens = max_tokens or settings.extract_max_tokens
        self.max_research_chars = max(
            int(max_research_chars or settings.extract_max_research_chars), 1000
        )

    def build_prompt(self, area_name: str, research_text: str) -> str:
        text = research_text.strip()
        if len(text) > self.max_research_chars:
            logger.debug(
                f"Research text for {area_name} truncated from {len(text)} to {self.max_research_chars} chars"
            )
            text = text[: self.max_research_chars]
        return render_prompt(
            "extractor.prompt",
            area_name=area_name,
            research_text=text,
            styles=", ".join(get_args(RouteStyle)),
        )

    async def extract(self, area_name: str, research_text: str) -> list[CandidateRoute]:
        raw = await self.complete(
            self.build_prompt(area_name, research_text),
            max_tokens=self.max_tokens,
        )
        return self.parse(raw)

    @staticmethod
    def parse(raw_text: str) -> list[CandidateRoute]:
        """All-or-nothing parse: one bad record empties the batch."""
        try:
            payload = extract_json_value(raw_text)
        except json.JSONDecodeError as exc:
            logger.warning(f"Extraction payload is not valid JSON: {exc}")
            return []

        if isinstance(payload, dict):
            payload = payload.get("routes")
        if not isinstance(payload, list):
            logger.warning("Extraction payload has no route list")
            return []

        try:
            return _ROUTE_LIST.validate_python(payload)
        except ValidationError as exc:
            logger.warning(
                f"Extraction payload rejected ({exc.error_count()} invalid field(s)): "
                f"{exc.errors(include_url=False)[:3]}"
            )
            return []
