"""Tests for adapter selection and the OpenAI adapter's error mapping."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from autodeploy.config import LLMConfig, OpenAIConfig, Settings
from autodeploy.llm import create_llm
from autodeploy.llm.base import LLMError
from autodeploy.llm.openai_adapter import OpenAIAdapter


def test_create_llm_openai(minimal_config_dict: dict) -> None:
    llm = create_llm(Settings.model_validate(minimal_config_dict))

    assert isinstance(llm, OpenAIAdapter)
    assert llm.provider == "openai"
    assert llm.model == "gpt-4o-mini"


def test_create_llm_gemini(minimal_config_dict: dict) -> None:
    from autodeploy.llm.gemini import GeminiAdapter

    minimal_config_dict["llm"]["provider"] = "gemini"

    llm = create_llm(Settings.model_validate(minimal_config_dict))

    assert isinstance(llm, GeminiAdapter)
    assert llm.provider == "gemini"


def test_create_llm_unconfigured_provider() -> None:
    with pytest.raises(ValueError, match="not configured"):
        create_llm(Settings())


def test_create_llm_unknown_provider() -> None:
    settings = Settings(llm=LLMConfig(provider="llama", openai=OpenAIConfig(api_key="k")))

    with pytest.raises(ValueError, match="Unknown LLM provider"):
        create_llm(settings)


def test_openai_adapter_parses_response() -> None:
    adapter = OpenAIAdapter(OpenAIConfig(api_key="test-key"))
    completion = MagicMock()
    completion.usage.prompt_tokens = 120
    completion.usage.completion_tokens = 40
    completion.choices[0].message.content = "```dockerfile\nFROM alpine\n```"
    completion.choices[0].finish_reason = "stop"
    adapter.client = MagicMock()
    adapter.client.chat.completions.create = AsyncMock(return_value=completion)

    response = asyncio.run(adapter.generate("system", "user"))

    assert response.raw_text == "```dockerfile\nFROM alpine\n```"
    assert response.input_tokens == 120
    assert response.output_tokens == 40
    assert response.finish_reason == "stop"
    assert not response.truncated
    assert response.latency_seconds >= 0
    kwargs = adapter.client.chat.completions.create.await_args.kwargs
    assert kwargs["messages"][0] == {"role": "system", "content": "system"}
    assert kwargs["temperature"] == 0.1
    assert kwargs["max_tokens"] == 4096


def test_openai_adapter_wraps_api_errors() -> None:
    from openai import APIError

    adapter = OpenAIAdapter(OpenAIConfig(api_key="test-key"))
    adapter.client = MagicMock()
    adapter.client.chat.completions.create = AsyncMock(
        side_effect=APIError("rate limit", request=MagicMock(), body=None)
    )

    with pytest.raises(LLMError) as exc_info:
        asyncio.run(adapter.generate("system", "user"))

    assert exc_info.value.provider == "openai"
    assert "rate limit" in exc_info.value.message
    assert exc_info.value.retryable is False


def test_openai_rate_limit_is_retryable() -> None:
    import httpx
    from openai import RateLimitError

    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    adapter = OpenAIAdapter(OpenAIConfig(api_key="test-key"))
    adapter.client = MagicMock()
    adapter.client.chat.completions.create = AsyncMock(
        side_effect=RateLimitError(
            "slow down", response=httpx.Response(429, request=request), body=None
        )
    )

    with pytest.raises(LLMError) as exc_info:
        asyncio.run(adapter.generate("system", "user"))

    assert exc_info.value.retryable is True


def test_gemini_adapter_reports_truncation() -> None:
    from google.genai import types

    from autodeploy.config import GeminiConfig
    from autodeploy.llm.gemini import GeminiAdapter

    adapter = GeminiAdapter(GeminiConfig(api_key="test-key", max_output_tokens=256))
    reply = MagicMock()
    reply.text = "```dockerfile\nFROM python:3.11-slim\nRUN pip"
    reply.usage_metadata.prompt_token_count = 300
    reply.usage_metadata.candidates_token_count = 256
    reply.candidates[0].finish_reason = types.FinishReason.MAX_TOKENS
    adapter.client = MagicMock()
    adapter.client.aio.models.generate_content = AsyncMock(return_value=reply)

    response = asyncio.run(adapter.generate("system", "user"))

    assert response.finish_reason == "max_tokens"
    assert response.truncated
    assert response.output_tokens == 256
    config = adapter.client.aio.models.generate_content.await_args.kwargs["config"]
    assert config.max_output_tokens == 256


def test_gemini_quota_error_is_retryable() -> None:
    from google.genai import errors

    from autodeploy.config import GeminiConfig
    from autodeploy.llm.gemini import GeminiAdapter

    adapter = GeminiAdapter(GeminiConfig(api_key="test-key"))
    adapter.client = MagicMock()
    adapter.client.aio.models.generate_content = AsyncMock(
        side_effect=errors.APIError(
            429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}}
        )
    )

    with pytest.raises(LLMError) as exc_info:
        asyncio.run(adapter.generate("system", "user"))

    assert exc_info.value.provider == "gemini"
    assert exc_info.value.retryable is True
