"""Provider-neutral LLM interface used by the Dockerfile agents."""

import time
from abc import ABC, abstractmethod

from pydantic import BaseModel

# Finish reasons meaning the reply hit the output token limit.
TRUNCATED_FINISH_REASONS = frozenset({"length", "max_tokens"})


class LLMResponse(BaseModel):
    """One completion as returned by a provider, before Dockerfile extraction."""

    raw_text: str
    model: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    finish_reason: str | None = None
    latency_seconds: float = 0.0

    @property
    def truncated(self) -> bool:
        """True if the provider stopped because of the output token limit."""
        return (self.finish_reason or "").lower() in TRUNCATED_FINISH_REASONS


class LLMError(Exception):
    """A provider call failed.

    Attributes:
        provider: Adapter that failed (``"openai"`` or ``"gemini"``).
        message: Error text from the provider SDK.
        original_error: The SDK exception, if any.
        retryable: True for rate limits, timeouts and connection drops,
            where the same request may succeed later.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        original_error: Exception | None = None,
        *,
        retryable: bool = False,
    ) -> None:
        self.provider = provider
        self.message = message
        self.original_error = original_error
        self.retryable = retryable
        super().__init__(f"[{provider}] {message}")


class BaseLLM(ABC):
    """Base class for provider adapters.

    Subclasses implement :meth:`_complete` and list the SDK exception types
    in ``api_errors``; :meth:`generate` converts those into :class:`LLMError`
    and stamps the call latency on the response.
    """

    api_errors: tuple[type[Exception], ...] = ()

    @property
    @abstractmethod
    def provider(self) -> str:
        """Provider identifier used in errors and logs."""

    @abstractmethod
    async def _complete(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Issue one request to the provider."""

    def _is_retryable(self, exc: Exception) -> bool:
        return False

    async def generate(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Ask the model for one completion.

        Raises:
            LLMError: If the provider SDK reports a failure.
        """
        started = time.monotonic()
        try:
            response = await self._complete(system_prompt, user_prompt)
        except self.api_errors as exc:
            raise LLMError(
                provider=self.provider,
                message=str(exc),
                original_error=exc,
                retryable=self._is_retryable(exc),
            ) from exc
        return response.model_copy(
            update={"latency_seconds": round(time.monotonic() - started, 3)}
        )
