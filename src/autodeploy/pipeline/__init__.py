"""Build session orchestration: classification, fix selection, and retries."""

from autodeploy.pipeline.classifier import classify, summarize_errors
from autodeploy.pipeline.controller import (
    BuildRetryController,
    ControllerState,
    DefinitionGenerator,
)
from autodeploy.pipeline.definition_check import (
    DefinitionCheckError,
    check_definition,
    validate_definition,
)
from autodeploy.pipeline.fixes import apply_local_rewrites, select_fix
from autodeploy.pipeline.intake import file_manifest, load_project
from autodeploy.pipeline.logging import (
    log_attempt,
    log_session_complete,
    log_session_start,
    setup_logging,
)
from autodeploy.pipeline.staging import (
    StagingError,
    cleanup_staging,
    derive_image_tag,
    sanitize_definition,
    stage,
)

__all__ = [
    "BuildRetryController",
    "ControllerState",
    "DefinitionCheckError",
    "DefinitionGenerator",
    "StagingError",
    "apply_local_rewrites",
    "check_definition",
    "classify",
    "cleanup_staging",
    "derive_image_tag",
    "file_manifest",
    "load_project",
    "log_attempt",
    "log_session_complete",
    "log_session_start",
    "sanitize_definition",
    "select_fix",
    "setup_logging",
    "stage",
    "summarize_errors",
    "validate_definition",
]
