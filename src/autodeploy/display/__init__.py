"""Display infrastructure for build progress and error reporting."""

from autodeploy.display.callbacks import ProgressCallback
from autodeploy.display.error_display import ErrorDisplay
from autodeploy.display.session_display import SessionDisplay

__all__ = ["ErrorDisplay", "ProgressCallback", "SessionDisplay"]
