"""Settings for the build loop, the docker CLI and the LLM providers."""

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class DockerConfig(BaseModel):
    """Build tool invocation settings."""

    binary: str = "docker"
    build_timeout: float = 600.0
    version_probe_timeout: float = 5.0
    daemon_probe_timeout: float = 8.0
    extra_build_args: list[str] = []
    staging_prefix: str = "autodeploy-"
    staging_dir: str | None = None
    default_user: str | None = None


class BuildConfig(BaseModel):
    """Retry loop settings."""

    max_retries: int = Field(default=3, ge=1)
    lint_before_build: bool = True


class GeminiConfig(BaseModel):
    """Google Gemini API configuration."""

    api_key: str
    model: str = "gemini-2.5-pro"
    temperature: float = 0.0
    max_output_tokens: int = 4096
    request_timeout: float = 60.0


class OpenAIConfig(BaseModel):
    """OpenAI API configuration."""

    api_key: str
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    max_output_tokens: int = 4096
    request_timeout: float = 60.0


class LLMConfig(BaseModel):
    """Generation provider configuration.

    ``provider`` selects which of the configured backends the fixer and
    writer agents use.
    """

    provider: str = "openai"
    openai: OpenAIConfig | None = None
    gemini: GeminiConfig | None = None


class Settings(BaseModel):
    """Root configuration: ``docker``, ``build`` and ``llm`` sections plus output paths."""

    docker: DockerConfig = DockerConfig()
    build: BuildConfig = BuildConfig()
    llm: LLMConfig = LLMConfig()
    log_dir: str = "./logs"
    output_dir: str = "./output"

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Read a YAML file, expand environment references and validate it.

        A value that is exactly ``$NAME`` is replaced by the variable's value;
        ``${NAME}`` may also appear inside a longer string.  An empty file
        yields the defaults.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            ValueError: If a referenced variable is unset.
        """
        raw = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(_expand_env(raw))

    @classmethod
    def from_env(cls) -> "Settings":
        """Defaults plus API keys from ``OPENAI_API_KEY`` / ``GEMINI_API_KEY``.

        Used when no configuration file is given.
        """
        llm = LLMConfig()
        openai_key = os.environ.get("OPENAI_API_KEY")
        gemini_key = os.environ.get("GEMINI_API_KEY")
        if openai_key:
            llm.openai = OpenAIConfig(api_key=openai_key)
        if gemini_key:
            llm.gemini = GeminiConfig(api_key=gemini_key)
            if not openai_key:
                llm.provider = "gemini"
        return cls(llm=llm)


_WHOLE_REF = re.compile(r"^\$(\w+)$")
_EMBEDDED_REF = re.compile(r"\$\{(\w+)\}")


def _lookup(name: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise ValueError(f"Environment variable '{name}' is not set but the config references it")
    return value


def _expand_env(data: object) -> object:
    """Replace ``$NAME`` / ``${NAME}`` references throughout parsed YAML."""
    if isinstance(data, dict):
        return {key: _expand_env(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env(item) for item in data]
    if isinstance(data, str):
        whole = _WHOLE_REF.match(data)
        if whole:
            return _lookup(whole.group(1))
        return _EMBEDDED_REF.sub(lambda m: _lookup(m.group(1)), data)
    return data
