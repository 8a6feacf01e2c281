"""Fix strategy selection for failed builds.

``select_fix`` turns the classified errors of one failed attempt into a
:data:`~autodeploy.models.decision.FixDecision`:

- **rewrite**: one or more deterministic string rewrites changed the
  Dockerfile.  Rewrites are composed in error order, each one applied to the
  output of the previous ones.
- **delegate**: nothing local applies; hand a structured prompt context to
  the generation collaborator.
- **give_up**: no errors to act on, or the attempt ceiling was reached.

Every rewrite rule is idempotent: applying it to its own output is a no-op.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from autodeploy.models.build import ClassifiedError, ErrorCategory
from autodeploy.pipeline.classifier import REMOVE_COPY_FIX_PREFIX
from autodeploy.models.decision import (
    DelegateDecision,
    FixDecision,
    GiveUpDecision,
    PromptContext,
    RewriteDecision,
)

PYTHON_BASE_IMAGE = "python:3.11-slim"

# Default dependencies written when a Python project ships no requirements.txt.
FALLBACK_REQUIREMENTS: tuple[str, ...] = ("flask==2.3.3", "requests==2.31.0")

_GOLANG_FROM_RE = re.compile(
    r"^(?P<indent>[ \t]*)FROM[ \t]+golang:\S+(?P<alias>[ \t]+AS[ \t]+\S+)?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_GO_BUILD_PY_RE = re.compile(
    r"^(?P<indent>[ \t]*)RUN[ \t]+go[ \t]+build\b[^\n]*?(?P<script>[\w./-]+\.py)[ \t]*$",
    re.MULTILINE,
)
_PIP_REQUIREMENTS_RE = re.compile(
    r"^(?P<indent>[ \t]*)RUN[ \t]+(?P<command>pip3?[ \t]+install\b[^\n]*-r[ \t]+requirements\.txt[^\n]*)$",
    re.MULTILINE,
)
_COPY_REQUIREMENTS_RE = re.compile(
    r"^[ \t]*(?:COPY|ADD)[ \t]+(?:\./)?requirements\.txt[ \t]+\S+[ \t]*\n?",
    re.IGNORECASE | re.MULTILINE,
)
_GO_MOD_DOWNLOAD_RE = re.compile(
    r"^(?P<indent>[ \t]*)RUN[ \t]+go[ \t]+mod[ \t]+download[ \t]*$",
    re.MULTILINE,
)
_COPY_GO_MOD_SUM_RE = re.compile(
    r"^(?P<indent>[ \t]*)COPY[ \t]+go\.mod[ \t]+go\.sum[ \t]+(?P<dest>\S+)[ \t]*$",
    re.MULTILINE,
)
_GENERAL_COPY_RE = re.compile(
    r"^[ \t]*COPY[ \t]+(?:--\S+[ \t]+)*\./?[ \t]+\S+",
    re.IGNORECASE | re.MULTILINE,
)
_WORKDIR_LINE_RE = re.compile(
    r"^[ \t]*WORKDIR[ \t]+[^\n]*(?:\n|$)", re.IGNORECASE | re.MULTILINE
)
_FROM_LINE_RE = re.compile(
    r"^[ \t]*FROM[ \t]+[^\n]*(?:\n|$)", re.IGNORECASE | re.MULTILINE
)


def requirements_directive(
    packages: Sequence[str] = FALLBACK_REQUIREMENTS,
    install_command: str = "pip install --no-cache-dir -r requirements.txt",
) -> str:
    """Return the RUN line that writes requirements.txt and installs it."""
    body = "\\n".join(packages)
    return f'RUN echo "{body}" > requirements.txt && {install_command}'


def rewrite_go_to_python(definition: str) -> str:
    """Swap Go base images and Go builds of Python scripts for Python ones."""
    definition = _GOLANG_FROM_RE.sub(
        lambda m: f"{m.group('indent')}FROM {PYTHON_BASE_IMAGE}{m.group('alias') or ''}",
        definition,
    )
    return _GO_BUILD_PY_RE.sub(
        lambda m: f"{m.group('indent')}RUN python -m py_compile {m.group('script')}",
        definition,
    )


def rewrite_generate_requirements(definition: str) -> str:
    """Generate requirements.txt inline instead of copying a missing one."""

    def _replace(match: re.Match[str]) -> str:
        command = match.group("command")
        if "> requirements.txt" in command:
            return match.group(0)
        return f"{match.group('indent')}{requirements_directive(install_command=command)}"

    rewritten = _PIP_REQUIREMENTS_RE.sub(_replace, definition)
    if rewritten != definition:
        # The COPY would still fail on the missing file.
        return _COPY_REQUIREMENTS_RE.sub("", rewritten)
    # No install step to fold into: write the file where the COPY was.
    body = "\\n".join(FALLBACK_REQUIREMENTS)
    return _COPY_REQUIREMENTS_RE.sub(
        lambda m: f'RUN echo "{body}" > requirements.txt\n', definition
    )


def rewrite_go_mod_tidy(definition: str) -> str:
    """Regenerate go.sum with ``go mod tidy`` before downloading modules."""
    definition = _COPY_GO_MOD_SUM_RE.sub(
        lambda m: f"{m.group('indent')}COPY go.mod {m.group('dest')}",
        definition,
    )
    return _GO_MOD_DOWNLOAD_RE.sub(
        lambda m: f"{m.group('indent')}RUN go mod tidy && go mod download",
        definition,
    )


def rewrite_drop_copy_source(definition: str, source: str) -> str:
    """Drop COPY/ADD lines whose source is the missing *source* directory.

    Matches ``source`` itself and any path below it.  When that removed the
    only source of application code, a general ``COPY . .`` goes after the
    first WORKDIR (or FROM) line.
    """
    name = source.strip().removeprefix("./").strip("/")
    if not name or name == ".":
        return definition
    copy_re = re.compile(
        r"^[ \t]*(?:COPY|ADD)[ \t]+(?:--\S+[ \t]+)*(?:\./|/)?"
        + re.escape(name)
        + r"(?:/\S*)?[ \t]+[^\n]*\n?",
        re.IGNORECASE | re.MULTILINE,
    )
    rewritten = copy_re.sub("", definition)
    if rewritten == definition or _GENERAL_COPY_RE.search(rewritten):
        return rewritten
    anchor = _WORKDIR_LINE_RE.search(rewritten) or _FROM_LINE_RE.search(rewritten)
    if anchor is None:
        return rewritten
    line = anchor.group(0)
    insert = "COPY . .\n" if line.endswith("\n") else "\nCOPY . .\n"
    return rewritten[: anchor.end()] + insert + rewritten[anchor.end() :]


def _is_missing(error: ClassifiedError, file_name: str) -> bool:
    return (
        error.category == ErrorCategory.MISSING_FILE
        and error.source_file is not None
        and error.source_file.strip("/") == file_name
    )


@dataclass(frozen=True)
class RewriteRule:
    """A deterministic rewrite keyed to a category and error detail.

    ``rewrite`` receives the current definition and the error that matched.
    """

    name: str
    matches: Callable[[ClassifiedError], bool]
    rewrite: Callable[[str, ClassifiedError], str]


REWRITE_RULES: tuple[RewriteRule, ...] = (
    RewriteRule(
        name="go_to_python_base_image",
        matches=lambda e: e.category == ErrorCategory.LANGUAGE_MISMATCH,
        rewrite=lambda text, _error: rewrite_go_to_python(text),
    ),
    RewriteRule(
        name="generate_requirements_txt",
        matches=lambda e: _is_missing(e, "requirements.txt"),
        rewrite=lambda text, _error: rewrite_generate_requirements(text),
    ),
    RewriteRule(
        name="go_mod_tidy",
        matches=lambda e: _is_missing(e, "go.sum"),
        rewrite=lambda text, _error: rewrite_go_mod_tidy(text),
    ),
    RewriteRule(
        name="drop_missing_copy_source",
        matches=lambda e: (
            e.category == ErrorCategory.MISSING_FILE
            and e.source_file is not None
            and (e.proposed_fix or "").startswith(REMOVE_COPY_FIX_PREFIX)
        ),
        rewrite=lambda text, error: rewrite_drop_copy_source(text, error.source_file),
    ),
)


def apply_local_rewrites(
    errors: Sequence[ClassifiedError],
    definition: str,
    rules: Sequence[RewriteRule] = REWRITE_RULES,
) -> tuple[str, list[str]]:
    """Compose every applicable rewrite against *definition*.

    Errors are visited in order; for each one, every matching rule is applied
    to the output of the previous rewrites.  A rule counts as applied only if
    it changed the text.

    Returns:
        Tuple of ``(new_definition, applied_rule_names)``.
    """
    applied: list[str] = []
    current = definition
    for error in errors:
        for rule in rules:
            if not rule.matches(error):
                continue
            rewritten = rule.rewrite(current, error)
            if rewritten != current:
                current = rewritten
                if rule.name not in applied:
                    applied.append(rule.name)
    return current, applied


def select_fix(
    errors: Sequence[ClassifiedError],
    current_definition: str,
    attempt_number: int,
    max_retries: int,
    *,
    file_manifest: Sequence[str] = (),
    user_instruction: str | None = None,
) -> FixDecision:
    """Decide how to react to the errors of a failed attempt.

    Args:
        errors: Classified errors of the attempt, in detector order.
        current_definition: The Dockerfile text used by the attempt.
        attempt_number: 1-based number of the attempt that failed.
        max_retries: Maximum number of attempts in the session.
        file_manifest: Project file paths, forwarded to a delegate context.
        user_instruction: Optional free-text instruction from the user.

    Returns:
        A rewrite, delegate, or give-up decision.  Never raises for
        unrecognized input.
    """
    if not errors:
        return GiveUpDecision(reason="No recognizable errors in build output")

    # A fix produced after the last attempt could never be validated by a build.
    if attempt_number >= max_retries:
        return GiveUpDecision(
            reason=f"Attempt {attempt_number} of {max_retries} was the last"
        )

    new_definition, applied = apply_local_rewrites(errors, current_definition)
    if applied:
        return RewriteDecision(new_definition=new_definition, applied_rules=applied)

    return DelegateDecision(
        prompt_context=PromptContext(
            current_definition=current_definition,
            file_manifest=list(file_manifest),
            errors=list(errors),
            user_instruction=user_instruction,
            attempt_number=attempt_number,
            max_retries=max_retries,
        )
    )
