"""Tests for the LLM client: provider dispatch, structured output, usage tracking."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel, Field, ValidationError

from qlens.config import QLensSettings
from qlens.llm.client import EmptyResponseError, LLMClient, _flatten_schema_for_gemini
from qlens.llm.structured import AnalysisReport


class SimpleResult(BaseModel):
    answer: str = Field(description="The answer")


def _settings(**overrides: object) -> QLensSettings:
    defaults: dict[str, object] = {
        "llm_provider": "google",
        "google_api_key": "AIzaSyTest123456789",
        "anthropic_api_key": "",
        "openai_api_key": "",
        "llm_model": "gemini-2.5-pro",
        "output_dir": Path("/tmp/qlens-test-output"),
    }
    defaults.update(overrides)
    return QLensSettings(**defaults)  # type: ignore[arg-type]


def _gemini_response(text: str, prompt_tokens: int = 100, output_tokens: int = 50) -> MagicMock:
    response = MagicMock()
    response.text = text
    response.usage_metadata = MagicMock()
    response.usage_metadata.prompt_token_count = prompt_tokens
    response.usage_metadata.candidates_token_count = output_tokens
    return response


def _mock_google(client: LLMClient, response: Any) -> AsyncMock:
    genai_client = MagicMock()
    generate = AsyncMock(return_value=response)
    genai_client.aio.models.generate_content = generate
    client._sdk["google"] = genai_client
    return generate


# ---------------------------------------------------------------------------
# Key validation
# ---------------------------------------------------------------------------


class TestKeyValidation:
    def test_missing_google_key_raises(self) -> None:
        with pytest.raises(ValueError, match="Gemini API key not set"):
            LLMClient(_settings(google_api_key=""))

    def test_missing_anthropic_key_raises(self) -> None:
        with pytest.raises(ValueError, match="Claude API key not set"):
            LLMClient(_settings(llm_provider="anthropic"))

    def test_missing_openai_key_raises(self) -> None:
        with pytest.raises(ValueError, match="ChatGPT API key not set"):
            LLMClient(_settings(llm_provider="openai"))

    def test_local_needs_no_key(self) -> None:
        client = LLMClient(_settings(llm_provider="local", google_api_key=""))
        assert client.model_name == "llama3.1:8b"

    def test_model_name_for_cloud_provider(self) -> None:
        assert LLMClient(_settings()).model_name == "gemini-2.5-pro"


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class TestAnalyzeGoogle:
    @pytest.mark.asyncio
    async def test_structured_output_and_usage(self) -> None:
        client = LLMClient(_settings())
        _mock_google(client, _gemini_response('{"answer": "hello"}'))

        result = await client.analyze(
            system_prompt="You are helpful.",
            user_prompt="Say hello.",
            response_model=SimpleResult,
        )

        assert result.answer == "hello"
        assert client.tracker.input_tokens == 100
        assert client.tracker.output_tokens == 50
        assert client.tracker.calls == 1

    @pytest.mark.asyncio
    async def test_request_carries_schema_and_temperature(self) -> None:
        client = LLMClient(_settings())
        generate = _mock_google(client, _gemini_response('{"answer": "x"}'))

        await client.analyze("system text", "user text", SimpleResult)

        generate.assert_awaited_once()
        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == "gemini-2.5-pro"
        assert kwargs["contents"] == "user text"
        config = kwargs["config"]
        assert config.system_instruction == "system text"
        assert config.response_mime_type == "application/json"
        assert config.temperature == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_full_report_parses(self, report_dict: dict[str, Any]) -> None:
        client = LLMClient(_settings())
        _mock_google(client, _gemini_response(json.dumps(report_dict)))

        report = await client.analyze("s", "u", AnalysisReport)

        assert isinstance(report, AnalysisReport)
        assert len(report.archetype_mapping.data) == 3

    @pytest.mark.asyncio
    async def test_empty_response_raises(self) -> None:
        client = LLMClient(_settings())
        response = _gemini_response("")
        response.usage_metadata = None
        _mock_google(client, response)

        with pytest.raises(EmptyResponseError, match="Empty response from Gemini"):
            await client.analyze("s", "u", SimpleResult)

    @pytest.mark.asyncio
    async def test_non_json_raises_decode_error(self) -> None:
        client = LLMClient(_settings())
        _mock_google(client, _gemini_response("Sure! Here is your report:"))

        with pytest.raises(json.JSONDecodeError):
            await client.analyze("s", "u", SimpleResult)

    @pytest.mark.asyncio
    async def test_schema_mismatch_raises_validation_error(self) -> None:
        client = LLMClient(_settings())
        _mock_google(client, _gemini_response('{"wrong": 1}'))

        with pytest.raises(ValidationError):
            await client.analyze("s", "u", SimpleResult)

    @pytest.mark.asyncio
    async def test_single_attempt_on_failure(self) -> None:
        client = LLMClient(_settings())
        genai_client = MagicMock()
        generate = AsyncMock(side_effect=ConnectionError("boom"))
        genai_client.aio.models.generate_content = generate
        client._sdk["google"] = genai_client

        with pytest.raises(ConnectionError):
            await client.analyze("s", "u", SimpleResult)
        assert generate.await_count == 1

    def test_flattened_report_schema_has_no_defs(self) -> None:
        schema = _flatten_schema_for_gemini(AnalysisReport.model_json_schema(by_alias=True))
        assert "$defs" not in json.dumps(schema)


# ---------------------------------------------------------------------------
# Claude / ChatGPT / local
# ---------------------------------------------------------------------------


class TestAnalyzeAnthropic:
    @pytest.mark.asyncio
    async def test_tool_use_output(self) -> None:
        client = LLMClient(_settings(llm_provider="anthropic", anthropic_api_key="sk-ant-test"))
        block = SimpleNamespace(type="tool_use", name="structured_output", input={"answer": "hi"})
        response = SimpleNamespace(
            content=[block],
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        )
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=response)
        client._sdk["anthropic"] = sdk

        result = await client.analyze("s", "u", SimpleResult)

        assert result.answer == "hi"
        assert client.tracker.calls == 1
        kwargs = sdk.messages.create.await_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": "structured_output"}

    @pytest.mark.asyncio
    async def test_missing_tool_block_raises(self) -> None:
        client = LLMClient(_settings(llm_provider="anthropic", anthropic_api_key="sk-ant-test"))
        response = SimpleNamespace(content=[SimpleNamespace(type="text")], usage=None)
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=response)
        client._sdk["anthropic"] = sdk

        with pytest.raises(RuntimeError, match="No structured output"):
            await client.analyze("s", "u", SimpleResult)


def _chat_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3),
    )


class TestAnalyzeOpenAI:
    @pytest.mark.asyncio
    async def test_json_mode_output(self) -> None:
        client = LLMClient(_settings(llm_provider="openai", openai_api_key="sk-test", llm_model="gpt-4o"))
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=_chat_response('{"answer": "ok"}'))
        client._sdk["openai"] = sdk

        result = await client.analyze("s", "u", SimpleResult)

        assert result.answer == "ok"
        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "valid JSON matching this schema" in kwargs["messages"][0]["content"]
        assert client.tracker.input_tokens == 7

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        client = LLMClient(_settings(llm_provider="openai", openai_api_key="sk-test"))
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=_chat_response(None))
        client._sdk["openai"] = sdk

        with pytest.raises(RuntimeError, match="Empty response from OpenAI"):
            await client.analyze("s", "u", SimpleResult)


class TestAnalyzeLocal:
    @pytest.mark.asyncio
    async def test_local_single_attempt(self) -> None:
        client = LLMClient(_settings(llm_provider="local"))
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=_chat_response("not json"))
        client._sdk["local"] = sdk

        with pytest.raises(json.JSONDecodeError):
            await client.analyze("s", "u", SimpleResult)
        assert sdk.chat.completions.create.await_count == 1
        assert sdk.chat.completions.create.await_args.kwargs["model"] == "llama3.1:8b"

    def test_sdk_client_built_once(self) -> None:
        client = LLMClient(_settings(llm_provider="local"))
        with patch("openai.AsyncOpenAI") as factory:
            first = client._sdk_client()
            second = client._sdk_client()

        assert first is second
        factory.assert_called_once_with(base_url="http://localhost:11434/v1", api_key="ollama")


class TestUnsupportedProvider:
    @pytest.mark.asyncio
    async def test_unknown_provider_raises(self) -> None:
        client = LLMClient(_settings(llm_provider="carrier-pigeon"))
        with pytest.raises(ValueError, match="Unsupported LLM provider"):
            await client.analyze("s", "u", SimpleResult)
