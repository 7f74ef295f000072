"""Tests for the generation client adapter and model selection."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from guidewriter.agents.base import BaseAgent
from guidewriter.errors import GenerationError
from guidewriter.llm_client import OpenRouterMessagesAdapter


class TestModelSelection:
    """Model selection is consistent across the stages."""

    def test_default_model_fallback(self):
        with patch("guidewriter.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = ""
            mock_settings.default_model = "openai/gpt-4o-mini"

            from guidewriter.llm_client import get_model

            assert get_model() == "openai/gpt-4o-mini"

    def test_openrouter_model_override(self):
        with patch("guidewriter.llm_client.settings") as mock_settings:
            mock_settings.openrouter_model = "openai/gpt-4-turbo"
            mock_settings.default_model = "openai/gpt-4o-mini"

            from guidewriter.llm_client import get_model

            assert get_model() == "openai/gpt-4-turbo"

    def test_agents_use_get_model_when_none_given(self):
        with patch("guidewriter.agents.base.get_model") as mock_get_model:
            mock_get_model.return_value = "openai/gpt-4.1"

            from guidewriter.agents.curator import CuratorAgent

            agent = CuratorAgent(model=None)
            assert agent.model == "openai/gpt-4.1"

    def test_explicit_model_wins(self):
        with patch("guidewriter.agents.base.get_model") as mock_get_model:
            agent = BaseAgent(model="anthropic/claude-sonnet-4")
            assert agent.model == "anthropic/claude-sonnet-4"
            mock_get_model.assert_not_called()


class TestMessagesAdapter:
    """The OpenAI-compatible response is reshaped into text blocks."""

    @pytest.mark.asyncio
    async def test_create_maps_system_prompt_and_usage(self):
        openai_client = MagicMock()
        openai_client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="hello"))],
                usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
            )
        )
        adapter = OpenRouterMessagesAdapter(openai_client)

        response = await adapter.create(
            model="anthropic/claude-sonnet-4",
            max_tokens=100,
            system="be brief",
            messages=[{"role": "user", "content": "hi"}],
        )

        assert response.text == "hello"
        assert (response.usage.input_tokens, response.usage.output_tokens) == (12, 3)
        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert kwargs["temperature"] == 0.3

    def test_gpt5_models_use_default_temperature(self):
        assert OpenRouterMessagesAdapter._temperature_for_model("openai/gpt-5-mini") == 1

    @pytest.mark.asyncio
    async def test_empty_choices_give_empty_text(self):
        openai_client = MagicMock()
        openai_client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[], usage=None))
        response = await OpenRouterMessagesAdapter(openai_client).create(
            model="m", max_tokens=10, messages=[{"role": "user", "content": "hi"}]
        )
        assert response.text == ""
        assert response.usage.input_tokens == 0


class TestBaseAgentCalls:
    @pytest.mark.asyncio
    async def test_complete_logs_and_returns_text(self, fake_llm):
        llm = fake_llm("  generated text  ")
        agent = BaseAgent(model="test/model", client=llm)

        with patch("guidewriter.services.logger.log_llm_call") as mock_log:
            text = await agent.complete("prompt", max_tokens=50)

        assert text == "generated text"
        assert llm.messages.calls[0]["system"]
        assert mock_log.call_args.kwargs["input_tokens"] == 10

    @pytest.mark.asyncio
    async def test_failed_call_is_logged_and_raised(self, fake_llm):
        agent = BaseAgent(model="test/model", client=fake_llm(TimeoutError("slow")))

        with patch("guidewriter.services.logger.log_llm_call") as mock_log:
            with pytest.raises(GenerationError):
                await agent.complete("prompt", max_tokens=50, caller="curator.attempt")

        assert mock_log.call_args.kwargs["status"] == "error"
        assert mock_log.call_args.kwargs["caller"] == "curator.attempt"
