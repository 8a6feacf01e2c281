"""Dockerfile extraction from markdown-fenced LLM responses.

LLMs typically return a Dockerfile wrapped in a markdown fence, sometimes
with explanatory prose around it.  ``extract_dockerfile`` pulls out the
definition itself and rejects replies that contain no ``FROM`` instruction,
so a malformed reply is reported as a generation failure instead of being
staged and built.
"""

import re

# Matches fenced code blocks with an optional language tag.
_CODE_BLOCK_RE = re.compile(r"```(?:[\w-]+)?[^\S\n]*\n(.*?)\n?```", re.DOTALL)

# A Dockerfile needs a FROM instruction (optionally preceded by ARG lines).
_FROM_LINE_RE = re.compile(r"^[ \t]*FROM[ \t]+\S+", re.IGNORECASE | re.MULTILINE)
_PREAMBLE_RE = re.compile(r"^[ \t]*(?:ARG|#)", re.IGNORECASE)


def contains_from_instruction(text: str) -> bool:
    """Return ``True`` if *text* contains a ``FROM`` instruction line."""
    return _FROM_LINE_RE.search(text) is not None


def _strip_prose(text: str) -> str:
    """Drop prose before the first ``FROM`` (keeping leading ARG / comments)."""
    match = _FROM_LINE_RE.search(text)
    if match is None:
        return text.strip()
    head = text[: match.start()]
    kept: list[str] = []
    for line in reversed(head.splitlines()):
        if line.strip() and not _PREAMBLE_RE.match(line):
            break
        kept.append(line)
    kept.reverse()
    body = "\n".join(kept + [text[match.start() :]])
    return body.strip()


def extract_dockerfile(response_text: str) -> str | None:
    """Extract a Dockerfile from an LLM response.

    Handles:

    1. A fenced block (````dockerfile``, ````Dockerfile`` or untagged) that
       contains a ``FROM`` instruction; the first such block wins.
    2. No usable fence, but the text itself contains a ``FROM`` line: prose
       before it is dropped.
    3. Returns ``None`` when no ``FROM`` instruction is found anywhere.

    Args:
        response_text: The raw text returned by an LLM.

    Returns:
        The Dockerfile text ending in a newline, or ``None``.
    """
    if not response_text or not response_text.strip():
        return None

    for block in _CODE_BLOCK_RE.findall(response_text):
        if contains_from_instruction(block):
            return _strip_prose(block) + "\n"

    if contains_from_instruction(response_text):
        without_fences = response_text.replace("```", "")
        return _strip_prose(without_fences) + "\n"

    return None
