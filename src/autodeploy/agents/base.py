"""Abstract base agent with prompt construction and Dockerfile generation.

An agent is a stateless worker: it receives context, calls an LLM, and
returns a Dockerfile.  The controller owns execution, retry, and session
state.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from jinja2 import Template

from autodeploy.llm.base import BaseLLM, LLMError, LLMResponse
from autodeploy.llm.response_parser import extract_dockerfile

DEFAULT_PROMPT_DIR = Path(__file__).resolve().parent.parent / "templates" / "prompts"


class GenerationError(Exception):
    """Raised when the generation collaborator cannot produce a definition.

    Covers API failures (network, quota, timeout) and malformed replies.

    Attributes:
        agent_name: Name of the agent that failed.
        raw_text: The LLM reply, if one was received.
    """

    def __init__(self, message: str, *, agent_name: str = "", raw_text: str | None = None) -> None:
        self.agent_name = agent_name
        self.raw_text = raw_text
        super().__init__(f"[{agent_name}] {message}" if agent_name else message)


class BaseAgent(ABC):
    """Base class for Dockerfile-producing agents.

    Args:
        llm: Provider adapter used for generation.
        prompt_dir: Directory holding the Jinja2 system prompt templates.
    """

    def __init__(self, llm: BaseLLM, prompt_dir: Path = DEFAULT_PROMPT_DIR) -> None:
        self.llm = llm
        self.prompt_dir = prompt_dir

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent name for logging and identification."""
        ...

    @property
    @abstractmethod
    def prompt_template_name(self) -> str:
        """Filename of the Jinja2 prompt template (e.g., 'dockerfile_fixer.j2')."""
        ...

    def load_system_prompt(self, **template_vars: object) -> str:
        """Load and render the system prompt from a Jinja2 template file."""
        template_path = self.prompt_dir / self.prompt_template_name
        template = Template(template_path.read_text())
        return template.render(**template_vars)

    async def generate_definition(
        self,
        user_prompt: str,
        system_prompt_vars: dict | None = None,
    ) -> tuple[str, LLMResponse]:
        """Call the LLM and extract a Dockerfile from its reply.

        Returns:
            Tuple of (dockerfile_text, raw_llm_response).

        Raises:
            GenerationError: If the call fails or the reply holds no
                Dockerfile.
        """
        system_prompt = self.load_system_prompt(**(system_prompt_vars or {}))
        try:
            response = await self.llm.generate(system_prompt, user_prompt)
        except LLMError as exc:
            raise GenerationError(str(exc), agent_name=self.name) from exc

        if response.truncated:
            raise GenerationError(
                "LLM reply was cut off at the output token limit",
                agent_name=self.name,
                raw_text=response.raw_text,
            )
        definition = extract_dockerfile(response.raw_text)
        if definition is None:
            raise GenerationError(
                "LLM response contained no Dockerfile with a FROM instruction",
                agent_name=self.name,
                raw_text=response.raw_text,
            )
        return definition, response
