"""One structured LLM call per report, against any supported provider."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, TypeVar

from pydantic import BaseModel

from qlens.config import QLensSettings
from qlens.llm.structured import flatten_schema
from qlens.providers import PROVIDERS

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_TOOL_NAME = "structured_output"


class EmptyResponseError(RuntimeError):
    """The provider answered without any usable content."""


def _flatten_schema_for_gemini(schema: dict) -> dict:
    """Gemini's ``response_schema`` takes an OpenAPI subset: no $defs, no titles."""
    return flatten_schema(schema)


class LLMUsageTracker:
    """Running token totals for one client."""

    def __init__(self) -> None:
        self.input_tokens: int = 0
        self.output_tokens: int = 0
        self.calls: int = 0

    def record(self, input_tokens: int, output_tokens: int) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.calls += 1

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class LLMClient:
    """Send a prompt pair, get back a validated Pydantic model.

    Gemini gets a native response schema, Claude a forced tool call, and
    ChatGPT and Ollama JSON mode with the schema spelled out in the system
    prompt.  There are no retries: whatever the SDK raises reaches the
    caller, which decides what the user sees.
    """

    def __init__(self, settings: QLensSettings) -> None:
        self.settings = settings
        self.provider = settings.llm_provider
        self.tracker = LLMUsageTracker()
        self._sdk: dict[str, Any] = {}
        self._require_key()

    def _require_key(self) -> None:
        spec = PROVIDERS.get(self.provider)
        if spec is None or spec.api_key_field is None:
            return
        if not getattr(self.settings, spec.api_key_field):
            host = spec.key_url.removeprefix("https://")
            raise ValueError(
                f"{spec.display_name} API key not set. "
                f"Set {spec.key_env_var} in your .env file or environment. "
                f"Get a key from {host}"
            )

    @property
    def model_name(self) -> str:
        if self.provider == "local":
            return self.settings.local_model
        return self.settings.llm_model

    def _sdk_client(self) -> Any:
        """Build the provider's async SDK client on first use."""
        if self.provider in self._sdk:
            return self._sdk[self.provider]

        if self.provider == "google":
            from google import genai

            sdk: Any = genai.Client(api_key=self.settings.google_api_key)
        elif self.provider == "anthropic":
            import anthropic

            sdk = anthropic.AsyncAnthropic(api_key=self.settings.anthropic_api_key)
        elif self.provider == "openai":
            import openai

            sdk = openai.AsyncOpenAI(api_key=self.settings.openai_api_key)
        else:
            import openai

            # Ollama ignores the key but the SDK insists on one
            sdk = openai.AsyncOpenAI(base_url=self.settings.local_url, api_key="ollama")

        self._sdk[self.provider] = sdk
        return sdk

    async def analyze(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: type[T],
        max_tokens: int | None = None,
    ) -> T:
        """Run one request and validate the answer against ``response_model``.

        Args:
            system_prompt: Analyst instructions.
            user_prompt: Context, transcript and any custom directive.
            response_model: The model the JSON must satisfy.
            max_tokens: Defaults to ``settings.llm_max_tokens``.

        Raises:
            json.JSONDecodeError: The response was not JSON.
            pydantic.ValidationError: The JSON did not match ``response_model``.
            EmptyResponseError: The provider returned no content.
        """
        requests = {
            "google": self._request_google,
            "anthropic": self._request_anthropic,
            "openai": self._request_chat,
            "local": self._request_chat,
        }
        request = requests.get(self.provider)
        if request is None:
            raise ValueError(f"Unsupported LLM provider: {self.provider}")

        started = time.monotonic()
        payload = await request(
            system_prompt,
            user_prompt,
            response_model,
            max_tokens or self.settings.llm_max_tokens,
        )
        logger.info(
            "%s answered in %.1fs (%d in / %d out tokens so far)",
            self.model_name,
            time.monotonic() - started,
            self.tracker.input_tokens,
            self.tracker.output_tokens,
        )

        data = json.loads(payload) if isinstance(payload, str) else payload
        return response_model.model_validate(data)

    async def _request_google(
        self, system_prompt: str, user_prompt: str, response_model: type[T], max_tokens: int
    ) -> str:
        from google.genai import types

        client = self._sdk_client()
        schema = _flatten_schema_for_gemini(response_model.model_json_schema(by_alias=True))
        logger.debug("Calling Gemini API: model=%s", self.model_name)

        response = await client.aio.models.generate_content(
            model=self.model_name,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                response_mime_type="application/json",
                response_schema=schema,
                temperature=self.settings.llm_temperature,
                max_output_tokens=max_tokens,
            ),
        )

        usage = getattr(response, "usage_metadata", None)
        if usage:
            self.tracker.record(usage.prompt_token_count or 0, usage.candidates_token_count or 0)

        if not response.text:
            raise EmptyResponseError("Empty response from Gemini")
        return response.text

    async def _request_anthropic(
        self, system_prompt: str, user_prompt: str, response_model: type[T], max_tokens: int
    ) -> dict:
        client = self._sdk_client()
        tool = {
            "name": _TOOL_NAME,
            "description": f"Return the analysis result as a {response_model.__name__} object.",
            "input_schema": response_model.model_json_schema(by_alias=True),
        }
        logger.debug("Calling Anthropic API: model=%s", self.model_name)

        response = await client.messages.create(
            model=self.model_name,
            max_tokens=max_tokens,
            temperature=self.settings.llm_temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            tools=[tool],
            tool_choice={"type": "tool", "name": _TOOL_NAME},
        )

        if getattr(response, "usage", None):
            self.tracker.record(response.usage.input_tokens, response.usage.output_tokens)

        for block in response.content:
            if block.type == "tool_use" and block.name == _TOOL_NAME:
                return block.input
        raise EmptyResponseError("No structured output found in Anthropic response")

    async def _request_chat(
        self, system_prompt: str, user_prompt: str, response_model: type[T], max_tokens: int
    ) -> str:
        """OpenAI and Ollama: JSON mode, schema appended to the system prompt."""
        client = self._sdk_client()
        schema = json.dumps(response_model.model_json_schema(by_alias=True), indent=2)
        system = (
            f"{system_prompt}\n\nYou must respond with valid JSON matching this schema:\n"
            f"```json\n{schema}\n```"
        )
        label = "local model" if self.provider == "local" else "OpenAI"
        logger.debug("Calling %s: model=%s", label, self.model_name)

        response = await client.chat.completions.create(
            model=self.model_name,
            max_tokens=max_tokens,
            temperature=self.settings.llm_temperature,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user_prompt},
            ],
        )

        if getattr(response, "usage", None):
            self.tracker.record(
                response.usage.prompt_tokens or 0, response.usage.completion_tokens or 0
            )

        content = response.choices[0].message.content
        if content is None:
            raise EmptyResponseError(f"Empty response from {label}")
        return content
