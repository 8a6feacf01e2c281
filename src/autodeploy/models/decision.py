"""Fix decision models produced after a failed build attempt.

A decision is a tagged union discriminated on ``kind``: the controller
matches on it exhaustively instead of probing the returned text.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from autodeploy.llm.base import LLMResponse
from autodeploy.models.build import ClassifiedError


class PromptContext(BaseModel):
    """Everything the generation collaborator needs to propose a new definition."""

    model_config = ConfigDict(frozen=True)

    current_definition: str
    file_manifest: list[str] = []
    errors: list[ClassifiedError] = []
    user_instruction: str | None = None
    attempt_number: int = 1
    max_retries: int = 3

    def to_prompt_text(self) -> str:
        """Render this context as structured text for a generation prompt.

        Returns:
            Multi-line string with the file manifest, the enumerated errors
            and the current definition.
        """
        lines = [
            f"BUILD FAILED on attempt {self.attempt_number} of {self.max_retries}.",
            "",
            "Project files:",
        ]
        if self.file_manifest:
            for path in self.file_manifest:
                lines.append(f"  - {path}")
        else:
            lines.append("  (none supplied)")

        lines.append("")
        lines.append("Errors found:")
        for index, error in enumerate(self.errors, start=1):
            location = ""
            if error.source_file:
                location = f" [{error.source_file}"
                if error.line_number is not None:
                    location += f":{error.line_number}"
                location += "]"
            lines.append(f"  {index}. ({error.category.value}){location} {error.message}")
            if error.suggestion:
                lines.append(f"     suggestion: {error.suggestion}")
            if error.proposed_fix:
                lines.append(f"     hint: {error.proposed_fix}")

        if self.user_instruction:
            lines.append("")
            lines.append("User instruction:")
            lines.append(self.user_instruction)

        lines.append("")
        lines.append("Current Dockerfile:")
        lines.append("```dockerfile")
        lines.append(self.current_definition.rstrip("\n"))
        lines.append("```")
        return "\n".join(lines)


class RewriteDecision(BaseModel):
    """A deterministic local rewrite produced a new definition."""

    kind: Literal["rewrite"] = "rewrite"
    new_definition: str
    applied_rules: list[str] = []


class DelegateDecision(BaseModel):
    """No local rule applied; ask the generation collaborator for a fix."""

    kind: Literal["delegate"] = "delegate"
    prompt_context: PromptContext


class GiveUpDecision(BaseModel):
    """Nothing actionable this round."""

    kind: Literal["give_up"] = "give_up"
    reason: str


FixDecision = Annotated[
    RewriteDecision | DelegateDecision | GiveUpDecision,
    Field(discriminator="kind"),
]


class GeneratedFix(BaseModel):
    """A replacement definition returned for a delegate decision.

    ``response`` is the completion it was extracted from, when the
    collaborator called an LLM; the controller logs its token usage.
    """

    model_config = ConfigDict(frozen=True)

    definition: str
    response: LLMResponse | None = None
