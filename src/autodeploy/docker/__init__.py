"""Container build tool access: availability probes and streamed builds."""

from autodeploy.docker.engine import DockerEngine
from autodeploy.docker.invoker import BuildInvocationError, BuildInvoker, LogSink
from autodeploy.docker.status import DockerStatusChecker, installation_instructions
from autodeploy.models.execution import DockerStatus, InvocationResult

__all__ = [
    "BuildInvocationError",
    "BuildInvoker",
    "DockerEngine",
    "DockerStatus",
    "DockerStatusChecker",
    "InvocationResult",
    "LogSink",
    "installation_instructions",
]
