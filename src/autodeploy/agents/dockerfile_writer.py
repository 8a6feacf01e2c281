"""Writer agent: drafts the initial Dockerfile for a project."""

from collections.abc import Sequence

from autodeploy.agents.base import BaseAgent
from autodeploy.models.build import FileKind, ProjectFile

# Manifests whose content helps the model choose a base image and commands.
KEY_MANIFESTS: frozenset[str] = frozenset({
    "requirements.txt", "pyproject.toml", "setup.py", "Pipfile",
    "package.json", "go.mod", "pom.xml", "build.gradle",
    "Cargo.toml", "Gemfile", "composer.json",
})

MAX_MANIFEST_CHARS = 2000


class DockerfileWriterAgent(BaseAgent):
    """Drafts a Dockerfile from a project snapshot and a user instruction."""

    @property
    def name(self) -> str:
        return "dockerfile_writer"

    @property
    def prompt_template_name(self) -> str:
        return "dockerfile_writer.j2"

    def build_user_prompt(
        self, files: Sequence[ProjectFile], user_instruction: str | None = None
    ) -> str:
        """List the project files and inline the key manifests."""
        lines = ["Project files:"]
        manifests: list[tuple[str, str]] = []
        for entry in files:
            if entry.kind == FileKind.DIRECTORY:
                continue
            lines.append(f"  - {entry.path}")
            base_name = entry.path.rsplit("/", 1)[-1]
            if base_name in KEY_MANIFESTS and isinstance(entry.content, str):
                manifests.append((entry.path, entry.content[:MAX_MANIFEST_CHARS]))

        for path, content in manifests:
            lines.append("")
            lines.append(f"Contents of {path}:")
            lines.append("```")
            lines.append(content.rstrip("\n"))
            lines.append("```")

        if user_instruction:
            lines.append("")
            lines.append("User instruction:")
            lines.append(user_instruction)

        lines.append("")
        lines.append("Write a Dockerfile for this project in a single ```dockerfile block.")
        return "\n".join(lines)

    async def write(
        self, files: Sequence[ProjectFile], user_instruction: str | None = None
    ) -> str:
        """Return a first-draft Dockerfile for *files*.

        Raises:
            GenerationError: On API failure or a reply without a Dockerfile.
        """
        definition, _ = await self.generate_definition(
            self.build_user_prompt(files, user_instruction)
        )
        return definition
