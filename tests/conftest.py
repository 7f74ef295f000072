from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from guidewriter.models.routes import ValidatedRoute


class FakeMessages:
    """Returns scripted responses in order and records every request."""

    def __init__(self, responses: list[str | Exception]):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self.responses:
            raise AssertionError("unexpected generation call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=response)],
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        )

    @property
    def prompts(self) -> list[str]:
        return [call["messages"][-1]["content"] for call in self.calls]


class FakeLLM:
    def __init__(self, *responses: str | Exception):
        self.messages = FakeMessages(list(responses))


@pytest.fixture
def fake_llm():
    return FakeLLM


def make_route(idx: int, *, style: str = "sport", grade: str = "5.10a", name: str | None = None) -> ValidatedRoute:
    return ValidatedRoute(
        name=name or f"Route {idx}",
        grade=grade,
        style=style,
        location="Main Wall",
        url=f"https://www.mountainproject.com/route/{100000 + idx}/route-{idx}",
        valid=True,
        status_code=200,
    )


@pytest.fixture
def route_factory():
    return make_route
