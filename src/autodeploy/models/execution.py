"""Build tool invocation and availability models."""

from pydantic import BaseModel


class InvocationResult(BaseModel):
    """Result of running one ``docker build`` child process."""

    success: bool
    exit_code: int
    duration_seconds: float
    timed_out: bool = False


class DockerStatus(BaseModel):
    """Outcome of the build tool availability probes."""

    is_installed: bool
    is_running: bool
    can_build: bool
    version: str | None = None
    error: str | None = None


class ProbeResult(BaseModel):
    """Result of a short probe command."""

    success: bool
    output: str = ""
    error: str = ""
    timed_out: bool = False
