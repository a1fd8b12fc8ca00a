"""Built-in plugin: remember which images and containers a run used."""

from __future__ import annotations

import pluggy

from dockwork.logger import logger
from dockwork.types import ContainerRecord, RunRecord

hookimpl = pluggy.HookimplMarker("dockwork")


class RunRecordPlugin:
    """Appends each started container and its image to the run's RunRecord."""

    @hookimpl
    def dockwork_container_started(
        self,
        record: ContainerRecord,
        image: str,
        run_record: RunRecord | None,
    ) -> None:
        if run_record is None:
            return
        if image not in run_record.images:
            run_record.images.append(image)
        run_record.containers.append(record)
        logger.debug(
            "Recorded container for run",
            container=record.container_id[:12],
            image=image,
            image_id=record.image_id,
        )
