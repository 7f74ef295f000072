from __future__ import annotations

import time
from typing import Any

from guidewriter.errors import GenerationError
from guidewriter.llm_client import client as llm_client, get_model
from guidewriter.services import logger as log_service
from guidewriter.services.prompt_store import render_prompt


class BaseAgent:
    """Base for stages that make single request/response generation calls.

    Subclasses set `name` and `system_prompt_key`. Tests may assign `client`
    to any object exposing `messages.create(...)`.
    """

    name: str = "base"
    system_prompt_key: str = "base.system_prompt"

    def __init__(self, model: str | None = None, client: Any | None = None):
        self.model = model or get_model()
        self.client = client

    @property
    def system_prompt(self) -> str:
        return render_prompt(self.system_prompt_key)

    async def complete(self, prompt: str, *, max_tokens: int, caller: str | None = None) -> str:
        """Run one generation call and return its text."""
        active_client = self.client or llm_client()
        caller = caller or self.name

        t0 = time.monotonic()
        try:
            response = await active_client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=self.system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            log_service.log_llm_call(
                model=self.model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(e),
            )
            raise GenerationError(f"Generation call failed in {caller}: {e}") from e

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            input_tokens=getattr(usage, "input_tokens", 0) if usage else 0,
            output_tokens=getattr(usage, "output_tokens", 0) if usage else 0,
            duration_ms=elapsed_ms,
        )
        return self._extract_response_text(response)

    @staticmethod
    def _extract_response_text(response: Any) -> str:
        blocks = getattr(response, "content", None) or []
        text_parts: list[str] = []
        for block in blocks:
            btype = getattr(block, "type", None)
            btext = getattr(block, "text", None)
            is_text_like_type = btype in (None, "text") or not isinstance(btype, str)
            if is_text_like_type and isinstance(btext, str) and btext.strip():
                text_parts.append(btext)
        return "\n".join(text_parts).strip()
