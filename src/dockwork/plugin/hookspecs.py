"""Pluggy hook specifications for dockwork plugins.

All hooks use the "dockwork" namespace and are validated by pluggy at
registration time.
"""

from __future__ import annotations

import pluggy

from dockwork.types import ContainerRecord, RunRecord

hookspec = pluggy.HookspecMarker("dockwork")


class DockworkSpec:
    """Hook specifications for dockwork plugins."""

    @hookspec
    def dockwork_container_started(
        self,
        record: ContainerRecord,
        image: str,
        run_record: RunRecord | None,
    ) -> None:
        """Called once after a build container has started successfully.

        Implementations record fingerprints, image usage, audit trails, etc.
        Exceptions are logged by the caller and never fail provisioning.

        Args:
            record: What ``docker inspect`` reported for the new container
            image: The image reference the container was started from
            run_record: Bookkeeping for the current run, if the caller keeps one
        """
