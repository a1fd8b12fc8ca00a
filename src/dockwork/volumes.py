"""Volume planning for a new build container.

Decides, per required directory, whether the new container can reach it
through ``--volumes-from`` of the container we are already running in, or
needs a fresh ``-v dir:dir`` bind mount.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from dockwork.logger import logger
from dockwork.types import VolumePlan


def plan_volumes(
    required_dirs: Sequence[str],
    self_container_id: str | None,
    mounted_volumes: Iterable[str],
    *,
    bind_uncovered: bool = True,
) -> VolumePlan:
    """Partition *required_dirs* into bind mounts vs volumes-from.

    Args:
        required_dirs: Directories the new container must see at the same path.
        self_container_id: Id of the container this process runs in, or None
            when running directly on the host.
        mounted_volumes: Paths mounted into ``self_container_id``.
        bind_uncovered: When running containerized and no mounted volume
            covers a directory, bind-mount it anyway. With False the
            directory is left out of the plan entirely.

    Coverage is a plain string-prefix test, so ``/workspace2`` counts as
    covered by ``/workspace``. The first matching volume wins.
    """
    plan = VolumePlan()

    if self_container_id is None:
        for d in required_dirs:
            plan.bind_mounts[d] = d
        return plan

    volumes = list(mounted_volumes)
    for d in required_dirs:
        covering = next((vol for vol in volumes if d.startswith(vol)), None)
        if covering is not None:
            plan.volumes_from[self_container_id] = None
            logger.debug(
                "Directory reachable via volumes-from",
                dir=d,
                volume=covering,
                container=self_container_id,
            )
        elif bind_uncovered:
            plan.bind_mounts[d] = d
        else:
            logger.warning(
                "No mounted volume covers directory; leaving it unmapped",
                dir=d,
                container=self_container_id,
            )

    return plan
