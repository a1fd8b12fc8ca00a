"""Build container provisioning.

Checks the engine version, prepares the workspace and its temp sibling,
plans volumes, starts the container, then lets plugins record it.

Provides:
  - VersionError: the engine is too old for ``docker exec``
  - temp_dir_for(): the ``<workspace>@tmp`` sibling path
  - check_version(): enforce the minimum engine version
  - provision_container(): the whole sequence, returning the container id
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import pluggy
from packaging.version import Version

from dockwork.config import get_settings
from dockwork.docker import DockerClient, DockerCommandError
from dockwork.environment import diff_environment
from dockwork.logger import logger
from dockwork.types import RunRecord, VolumePlan
from dockwork.volumes import plan_volumes


class VersionError(RuntimeError):
    """The docker engine is older than the minimum that supports ``exec``."""


def temp_dir_for(workspace: Path) -> Path:
    """Sibling temp dir for *workspace*: ``/ws/job`` -> ``/ws/job@tmp``."""
    suffix = get_settings().workspace.tmp_suffix
    return workspace.with_name(f"{workspace.name}{suffix}tmp")


def check_version(client: DockerClient) -> Version | None:
    """Raise VersionError if the engine is too old; warn if the version is unknown."""
    minimum = Version(get_settings().docker.min_version)
    version = client.version()
    if version is None:
        logger.error(
            "Failed to parse docker version. There is a minimum docker version "
            f"requirement of v{minimum}",
            minimum=str(minimum),
        )
        return None
    if version < minimum:
        raise VersionError(
            f"The docker version is less than v{minimum}. "
            "Steps that need 'docker exec' will not work."
        )
    logger.debug("Docker version ok", version=str(version), minimum=str(minimum))
    return version


def _plan(client: DockerClient, dirs: list[str]) -> VolumePlan:
    container_id = client.get_container_id_if_containerized()
    mounted = client.get_volumes(container_id) if container_id is not None else []
    if container_id is not None:
        logger.info("Running inside a container", container=container_id[:12], volumes=mounted)
    return plan_volumes(dirs, container_id, mounted)


def provision_container(
    client: DockerClient,
    image: str,
    *,
    workspace: str | Path,
    tmp_dir: str | Path | None = None,
    command: Sequence[str] | str | None = None,
    entrypoint: str | None = None,
    args: Sequence[str] | str | None = None,
    user: str | None = None,
    include_volumes: bool | None = None,
    include_environment: bool | None = None,
    env: Mapping[str, str] | None = None,
    host_env: Mapping[str, str] | None = None,
    run_record: RunRecord | None = None,
    plugin_manager: pluggy.PluginManager | None = None,
) -> str:
    """Start a build container for *image* and return its id.

    Args:
        client: Docker client bound to the resolved executable
        image: Image to start
        workspace: Host workspace; created if missing and used as workdir
        tmp_dir: Temp dir to expose as well; defaults to temp_dir_for(workspace)
        command: Command (and args) to run in the container
        entrypoint: Entrypoint override
        args: Extra ``docker run`` arguments, a string is split shell-style
        user: ``-u`` value for the container
        include_volumes: Make workspace and temp dir reachable in the container
        include_environment: Pass the phase's env vars that differ from host_env
        env: The phase's environment
        host_env: The host's baseline environment
        run_record: Bookkeeping handed to the container-started hook
        plugin_manager: Defaults to get_plugin_manager()

    Raises:
        VersionError: the engine is older than ``[docker] min_version``
        ProvisioningError: ``docker run`` failed
    """
    s = get_settings()
    if include_volumes is None:
        include_volumes = s.scope.include_volumes
    if include_environment is None:
        include_environment = s.scope.include_environment

    check_version(client)

    ws = Path(workspace).absolute()
    tmp = Path(tmp_dir).absolute() if tmp_dir is not None else temp_dir_for(ws)
    # Create before docker does, otherwise -v leaves them owned by root
    ws.mkdir(parents=True, exist_ok=True)
    tmp.mkdir(parents=True, exist_ok=True)

    plan = _plan(client, [str(ws), str(tmp)]) if include_volumes else VolumePlan()

    if include_environment:
        reduced = diff_environment(env or {}, host_env or {})
        logger.debug("Reduced environment", keys=sorted(reduced))
    else:
        reduced = {}

    container_id = client.run(
        image,
        workdir=str(ws),
        volumes=plan.bind_mounts,
        volumes_from=plan.volumes_from_ids,
        env=reduced,
        user=user,
        entrypoint=entrypoint,
        command=command,
        args=args,
    )

    _notify_started(client, container_id, image, run_record, plugin_manager)
    return container_id


def _notify_started(
    client: DockerClient,
    container_id: str,
    image: str,
    run_record: RunRecord | None,
    plugin_manager: pluggy.PluginManager | None,
) -> None:
    try:
        record = client.get_container_record(container_id)
    except (DockerCommandError, ValueError) as exc:
        # ValueError covers unparsable inspect JSON
        logger.error(
            "Failed to inspect started container",
            container=container_id[:12],
            error=str(exc),
        )
        return

    try:
        if plugin_manager is None:
            from dockwork.plugin import get_plugin_manager

            plugin_manager = get_plugin_manager()
        plugin_manager.hook.dockwork_container_started(
            record=record, image=image, run_record=run_record
        )
    except Exception:
        logger.exception("Container started hook failed", container=container_id[:12])
