"""LLM provider adapters for OpenAI and Gemini."""

from autodeploy.config import Settings
from autodeploy.llm.base import BaseLLM, LLMError, LLMResponse
from autodeploy.llm.response_parser import extract_dockerfile

__all__ = [
    "BaseLLM",
    "LLMError",
    "LLMResponse",
    "create_llm",
    "extract_dockerfile",
]


def create_llm(settings: Settings) -> BaseLLM:
    """Build the adapter selected by ``settings.llm.provider``.

    Adapters are imported lazily so only the selected provider's SDK is
    loaded.

    Raises:
        ValueError: If the selected provider is not configured.
    """
    llm_config = settings.llm
    if llm_config.provider == "gemini":
        if llm_config.gemini is None:
            raise ValueError("llm.provider is 'gemini' but llm.gemini is not configured")
        from autodeploy.llm.gemini import GeminiAdapter

        return GeminiAdapter(llm_config.gemini)
    if llm_config.provider == "openai":
        if llm_config.openai is None:
            raise ValueError("llm.provider is 'openai' but llm.openai is not configured")
        from autodeploy.llm.openai_adapter import OpenAIAdapter

        return OpenAIAdapter(llm_config.openai)
    raise ValueError(f"Unknown LLM provider: {llm_config.provider}")
