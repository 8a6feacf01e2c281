"""OpenAI Chat Completions adapter."""

from openai import APIConnectionError, APIError, AsyncOpenAI, RateLimitError

from autodeploy.config import OpenAIConfig
from autodeploy.llm.base import BaseLLM, LLMResponse


class OpenAIAdapter(BaseLLM):
    """Adapter for ``AsyncOpenAI`` chat completions.

    Args:
        config: API key, model, temperature, output limit and timeout.
    """

    api_errors = (APIError,)

    def __init__(self, config: OpenAIConfig) -> None:
        self.client = AsyncOpenAI(api_key=config.api_key, timeout=config.request_timeout)
        self.model = config.model
        self.temperature = config.temperature
        self.max_output_tokens = config.max_output_tokens

    @property
    def provider(self) -> str:
        return "openai"

    def _is_retryable(self, exc: Exception) -> bool:
        # APITimeoutError is a subclass of APIConnectionError.
        return isinstance(exc, (RateLimitError, APIConnectionError))

    async def _complete(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_output_tokens,
        )

        usage = completion.usage
        choice = completion.choices[0] if completion.choices else None
        return LLMResponse(
            raw_text=(choice.message.content or "") if choice else "",
            model=self.model,
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
            finish_reason=choice.finish_reason if choice else None,
        )
