"""Run a build phase's subprocesses inside a Docker container."""

from dockwork.docker import (  # noqa: F401
    DockerClient,
    DockerCommandError,
    ExecutableResolutionError,
    ProvisioningError,
    resolve_executable,
)
from dockwork.environment import diff_environment, env_tokens  # noqa: F401
from dockwork.launcher import (  # noqa: F401
    ContainerExecDecorator,
    DecoratedLauncher,
    HostLauncher,
    Launcher,
)
from dockwork.provisioner import VersionError, provision_container  # noqa: F401
from dockwork.reaper import ReapExecError, kill_container_processes  # noqa: F401
from dockwork.scope import ContainerScope  # noqa: F401
from dockwork.types import (  # noqa: F401
    ContainerRecord,
    DecoratorContext,
    LaunchRequest,
    RunRecord,
    VolumePlan,
)
from dockwork.volumes import plan_volumes  # noqa: F401
