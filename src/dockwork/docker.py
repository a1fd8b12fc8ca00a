"""Docker CLI client: thin subprocess wrappers around the engine executable.

Every call runs exactly once; failures surface as exceptions carrying the
command, exit code and stderr. Nothing here retries or imposes a timeout,
the caller owns both.
"""

from __future__ import annotations

import json
import os
import re
import shlex
import shutil
import socket
import subprocess
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

from packaging.version import InvalidVersion, Version

from dockwork.config import get_settings
from dockwork.logger import logger
from dockwork.types import ContainerRecord

_VERSION_RE = re.compile(r"(\d+(?:\.\d+)+)")
# cgroup v1: "12:pids:/docker/<id>"; systemd driver: "0::/system.slice/docker-<id>.scope"
_CGROUP_ID_RE = re.compile(r"docker[/-]([0-9a-f]{64})")
# cgroup v2 has no id in /proc/self/cgroup; the container's own files are
# mounted from /var/lib/docker/containers/<id>/
_MOUNTINFO_ID_RE = re.compile(r"/containers/([0-9a-f]{64})/")


class ExecutableResolutionError(OSError):
    """The docker executable could not be found."""


class DockerCommandError(Exception):
    """Raised when a docker command fails."""

    def __init__(self, command: str, stderr: str, returncode: int) -> None:
        self.command = command
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"docker {command} failed (exit {returncode}): {stderr}")


class ProvisioningError(DockerCommandError):
    """Raised when the build container could not be created."""


def resolve_executable(tool_name: str | None = None, env: Mapping[str, str] | None = None) -> str:
    """Find the docker executable for *tool_name* (or the default CLI).

    Named tools come from ``[docker.tools]``; the search uses *env*'s PATH
    when given, so a phase can point at its own docker installation.
    """
    s = get_settings()
    if tool_name:
        candidate = s.docker.tools.get(tool_name)
        if candidate is None:
            raise ExecutableResolutionError(f"No docker tool named {tool_name!r} is configured")
    else:
        candidate = s.docker.cli

    search_path = env.get("PATH") if env is not None else None
    found = shutil.which(candidate, path=search_path)
    if found is None:
        raise ExecutableResolutionError(f"Docker executable not found: {candidate}")
    return found


def parse_version(text: str) -> Version | None:
    """Pull the first dotted number out of *text* (``"24.0.7"``, ``"1.13.1-ce"``)."""
    match = _VERSION_RE.search(text)
    if match is None:
        return None
    try:
        return Version(match.group(1))
    except InvalidVersion:
        return None


def require_success(result: subprocess.CompletedProcess[str], command: str) -> str:
    """Assert that a docker command succeeded, raising DockerCommandError otherwise.

    Returns the stripped stdout on success.
    """
    if result.returncode != 0:
        raise DockerCommandError(command, result.stderr.strip(), result.returncode)
    return result.stdout.strip()


class DockerClient:
    """Runs docker CLI commands on the host with a fixed executable and environment."""

    def __init__(self, executable: str, env: Mapping[str, str] | None = None) -> None:
        self.executable = executable
        self.env = dict(env) if env is not None else None

    @classmethod
    def for_tool(
        cls, tool_name: str | None = None, env: Mapping[str, str] | None = None
    ) -> DockerClient:
        return cls(resolve_executable(tool_name, env), env)

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [self.executable, *args],
            capture_output=True,
            text=True,
            env=self.env,
        )

    # ------------------------------------------------------------------

    def version(self) -> Version | None:
        """Client version, or None when it cannot be determined."""
        result = self._run("version", "--format", "{{.Client.Version}}")
        if result.returncode == 0:
            parsed = parse_version(result.stdout)
            if parsed is not None:
                return parsed
        else:
            logger.debug("docker version failed", code=result.returncode, err=result.stderr.strip())

        # Engines before 1.4 have no --format; "Docker version 1.3.0, build c78088f"
        result = self._run("-v")
        if result.returncode != 0:
            logger.debug("docker -v failed", code=result.returncode, err=result.stderr.strip())
            return None
        return parse_version(result.stdout)

    def run(
        self,
        image: str,
        *,
        workdir: str | None = None,
        volumes: Mapping[str, str] | None = None,
        volumes_from: Iterable[str] = (),
        env: Mapping[str, str] | None = None,
        user: str | None = None,
        entrypoint: str | None = None,
        command: Sequence[str] | str | None = None,
        args: Sequence[str] | str | None = None,
    ) -> str:
        """Start a detached container and return its id."""
        argv = ["run", "-d"]
        if workdir:
            argv.extend(["-w", workdir])
        for host_path, container_path in (volumes or {}).items():
            argv.extend(["-v", f"{host_path}:{container_path}"])
        for container_id in volumes_from:
            argv.extend(["--volumes-from", container_id])
        if user:
            argv.extend(["-u", user])
        for key, value in (env or {}).items():
            argv.extend(["-e", f"{key}={value}"])
        argv.extend(_split(args))
        if entrypoint:
            argv.extend(["--entrypoint", entrypoint])
        argv.append(image)
        argv.extend(_split(command))

        result = self._run(*argv)
        if result.returncode != 0:
            raise ProvisioningError("run", result.stderr.strip(), result.returncode)
        container_id = result.stdout.strip()
        if not container_id:
            raise ProvisioningError("run", "no container id in output", result.returncode)
        logger.info("Container started", container=container_id[:12], image=image)
        return container_id

    def get_volumes(self, container_id: str) -> list[str]:
        """Mount destinations of *container_id*."""
        result = self._run(
            "inspect", "-f", "{{range .Mounts}}{{.Destination}}\n{{end}}", container_id
        )
        out = require_success(result, "inspect")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def get_container_record(self, container_id: str) -> ContainerRecord:
        result = self._run("inspect", "--format", "{{json .}}", container_id)
        raw = json.loads(require_success(result, "inspect"))
        return ContainerRecord.from_inspect(raw, host=socket.gethostname())

    def whoami(self) -> str:
        """``uid:gid`` of the current host user, the form ``exec -u`` expects."""
        return f"{os.getuid()}:{os.getgid()}"

    def get_container_id_if_containerized(
        self,
        cgroup_path: Path = Path("/proc/self/cgroup"),
        mountinfo_path: Path = Path("/proc/self/mountinfo"),
    ) -> str | None:
        """Id of the container this process runs in, or None on a bare host."""
        for path, pattern in ((cgroup_path, _CGROUP_ID_RE), (mountinfo_path, _MOUNTINFO_ID_RE)):
            try:
                text = path.read_text()
            except OSError:
                continue
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None


def _split(value: Sequence[str] | str | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return shlex.split(value)
    return list(value)
