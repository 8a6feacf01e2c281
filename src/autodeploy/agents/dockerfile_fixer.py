"""Fixer agent: proposes a corrected Dockerfile after a failed build."""

from autodeploy.agents.base import BaseAgent
from autodeploy.models.decision import GeneratedFix, PromptContext


class DockerfileFixerAgent(BaseAgent):
    """Turns a delegate prompt context into a replacement Dockerfile.

    Implements the ``DefinitionGenerator`` protocol the build controller
    depends on.
    """

    @property
    def name(self) -> str:
        return "dockerfile_fixer"

    @property
    def prompt_template_name(self) -> str:
        return "dockerfile_fixer.j2"

    def build_user_prompt(self, context: PromptContext) -> str:
        """Build the user prompt from the failed attempt's context."""
        return (
            f"{context.to_prompt_text()}\n\n"
            "Return the complete corrected Dockerfile in a single ```dockerfile block."
        )

    async def generate_fix(self, context: PromptContext) -> GeneratedFix:
        """Return a candidate replacement Dockerfile and the reply it came from.

        Raises:
            GenerationError: On API failure or a reply without a Dockerfile.
        """
        definition, response = await self.generate_definition(
            self.build_user_prompt(context),
            {"file_manifest": context.file_manifest},
        )
        return GeneratedFix(definition=definition, response=response)
