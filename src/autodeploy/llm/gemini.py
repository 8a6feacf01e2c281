"""Google Gemini adapter (google-genai SDK, async client)."""

from google import genai
from google.genai import errors, types

from autodeploy.config import GeminiConfig
from autodeploy.llm.base import BaseLLM, LLMResponse

# HTTP status codes worth retrying: quota and transient server errors.
_RETRYABLE_CODES = frozenset({408, 429, 500, 502, 503, 504})


class GeminiAdapter(BaseLLM):
    """Adapter for ``client.aio.models.generate_content``.

    Args:
        config: API key, model, temperature, output limit and timeout.
    """

    api_errors = (errors.APIError,)

    def __init__(self, config: GeminiConfig) -> None:
        self.client = genai.Client(
            api_key=config.api_key,
            http_options=types.HttpOptions(timeout=int(config.request_timeout * 1000)),
        )
        self.model = config.model
        self.temperature = config.temperature
        self.max_output_tokens = config.max_output_tokens

    @property
    def provider(self) -> str:
        return "gemini"

    def _is_retryable(self, exc: Exception) -> bool:
        return getattr(exc, "code", None) in _RETRYABLE_CODES

    async def _complete(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        reply = await self.client.aio.models.generate_content(
            model=self.model,
            contents=user_prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            ),
        )

        usage = reply.usage_metadata
        finish_reason = None
        if reply.candidates and reply.candidates[0].finish_reason is not None:
            reason = reply.candidates[0].finish_reason
            finish_reason = getattr(reason, "name", str(reason)).lower()
        return LLMResponse(
            raw_text=reply.text or "",
            model=self.model,
            input_tokens=usage.prompt_token_count if usage else None,
            output_tokens=usage.candidates_token_count if usage else None,
            finish_reason=finish_reason,
        )
