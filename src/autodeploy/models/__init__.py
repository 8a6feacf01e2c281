"""Data models for build sessions, attempts, and fix decisions."""

from autodeploy.models.build import (
    BuildAttemptRecord,
    BuildSession,
    ClassifiedError,
    ErrorCategory,
    FileKind,
    ProjectFile,
    SessionStatus,
)
from autodeploy.models.decision import (
    DelegateDecision,
    FixDecision,
    GeneratedFix,
    GiveUpDecision,
    PromptContext,
    RewriteDecision,
)
from autodeploy.models.execution import DockerStatus, InvocationResult, ProbeResult

__all__ = [
    "BuildAttemptRecord",
    "BuildSession",
    "ClassifiedError",
    "DelegateDecision",
    "DockerStatus",
    "ErrorCategory",
    "FileKind",
    "FixDecision",
    "GeneratedFix",
    "GiveUpDecision",
    "InvocationResult",
    "ProbeResult",
    "ProjectFile",
    "PromptContext",
    "RewriteDecision",
    "SessionStatus",
]
