"""Client for the Exa asynchronous research API.

A task moves pending -> running -> completed | failed | canceled on the
service side; this client creates it, polls it on a fixed interval and
turns the completed payload into text.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger
from pydantic import ValidationError

from guidewriter.config import settings
from guidewriter.errors import ResearchServiceError, ResearchTaskFailedError, ResearchTimeoutError
from guidewriter.models.research import (
    RawObject,
    RawText,
    ResearchStatus,
    ResearchTask,
    output_to_text,
    parse_output,
)
from guidewriter.services.prompt_store import render_prompt

Sleep = Callable[[float], Awaitable[None]]


def build_instructions(area_name: str) -> str:
    return render_prompt("research.instructions", area_name=area_name)


class ExaResearchClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        poll_interval: float | None = None,
        max_attempts: int | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api_key = api_key if api_key is not None else settings.exa_api_key
        self.base_url = (base_url or settings.exa_base_url).rstrip("/")
        self.model = model or settings.research_model
        self.poll_interval = max(
            float(poll_interval if poll_interval is not None else settings.research_poll_interval_seconds),
            0.0,
        )
        self.max_attempts = max(
            int(max_attempts if max_attempts is not None else settings.research_max_poll_attempts),
            1,
        )
        self.timeout = float(timeout if timeout is not None else settings.research_request_timeout_seconds)
        self._http_client = http_client
        self._sleep = sleep

    def _headers(self, *, json_body: bool = False) -> dict[str, str]:
        headers = {"x-api-key": self.api_key}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        async def _do_request(client: httpx.AsyncClient) -> httpx.Response:
            return await client.request(method, url, **kwargs)

        try:
            if self._http_client is None:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await _do_request(client)
            else:
                response = await _do_request(self._http_client)
        except httpx.HTTPError as exc:
            raise ResearchServiceError(f"Research request {method} {url} failed: {exc}") from exc

        if not response.is_success:
            body = response.text
            raise ResearchServiceError(
                f"Research service returned {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ResearchServiceError(f"Research service returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ResearchServiceError(f"Unexpected research response shape: {type(payload).__name__}")
        return payload

    async def create_task(self, instructions: str) -> str:
        payload = await self._request(
            "POST",
            self.base_url,
            json={"instructions": instructions, "model": self.model},
            headers=self._headers(json_body=True),
        )
        research_id = payload.get("researchId")
        if not isinstance(research_id, str) or not research_id:
            raise ResearchServiceError(f"Research task created without an id: {payload}")
        logger.info(f"Created research task {research_id}")
        return research_id

    async def get_task(self, research_id: str) -> ResearchTask:
        payload = await self._request(
            "GET",
            f"{self.base_url}/{research_id}",
            headers=self._headers(),
        )
        payload.setdefault("researchId", research_id)
        try:
            return ResearchTask.model_validate(payload)
        except ValidationError as exc:
            raise ResearchServiceError(f"Malformed research task {research_id}: {exc}") from exc

    async def wait_for_completion(self, research_id: str) -> ResearchTask:
        """Poll until a terminal status; raise on failure, cancellation or timeout."""
        for attempt in range(1, self.max_attempts + 1):
            task = await self.get_task(research_id)

            if task.status == ResearchStatus.COMPLETED:
                logger.info(
                    f"Research {research_id} completed after {attempt} poll(s) "
                    f"(~{attempt * self.poll_interval:g}s)"
                )
                return task
            if task.status in (ResearchStatus.FAILED, ResearchStatus.CANCELED):
                raise ResearchTaskFailedError(research_id, task.status.value)

            logger.debug(f"Research {research_id} {task.status.value} ({attempt}/{self.max_attempts})")
            if attempt < self.max_attempts:
                await self._sleep(self.poll_interval)

        raise ResearchTimeoutError(research_id, self.max_attempts * self.poll_interval)

    @staticmethod
    def task_text(task: ResearchTask) -> str:
        output = parse_output(task.output)
        if output is None or (isinstance(output, RawObject) and not output.fields):
            raise ResearchServiceError(f"Research {task.research_id} completed but no output found")
        text = output_to_text(output)
        if isinstance(output, RawText) and not text.strip():
            raise ResearchServiceError(f"Research {task.research_id} completed with empty output")
        return text

    async def research(self, area_name: str) -> str:
        """Create, await and read one research task for an area."""
        research_id = await self.create_task(build_instructions(area_name))
        task = await self.wait_for_completion(research_id)
        return self.task_text(task)
