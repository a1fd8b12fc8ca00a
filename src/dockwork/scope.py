"""Phase scope: run everything a block launches inside an existing container.

Usage::

    with ContainerScope(container_id, workspace="/ws/job") as launcher:
        proc = launcher.launch(LaunchRequest(argv=("make",), env=os.environ))
        proc.wait()

Leaving the block with an exception kills whatever the block started in
the container. Every request is tagged with a per-scope cookie variable,
and the cookie is the fingerprint the reaper looks for.
"""

from __future__ import annotations

import dataclasses
import os
import uuid
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType
from typing import Any

from dockwork.config import get_settings
from dockwork.docker import DockerClient, resolve_executable
from dockwork.launcher import (
    ContainerExecDecorator,
    DecoratedLauncher,
    ExecutableResolver,
    HostLauncher,
    Launcher,
)
from dockwork.logger import logger
from dockwork.types import DecoratorContext, LaunchRequest


class ContainerScope:
    """Installs the container-exec decorator for the lifetime of a phase."""

    def __init__(
        self,
        container_id: str,
        *,
        workspace: str | Path,
        user: str | None = None,
        tool_name: str | None = None,
        baseline_env: Mapping[str, str] | None = None,
        inner: Launcher | None = None,
        client: DockerClient | None = None,
        resolver: ExecutableResolver = resolve_executable,
        cookie: str | None = None,
    ) -> None:
        self.container_id = container_id
        self.workspace = Path(workspace).absolute()
        self.user = user
        self.tool_name = tool_name
        self.baseline_env = dict(os.environ if baseline_env is None else baseline_env)
        self.inner: Launcher = inner if inner is not None else HostLauncher()
        self.client = client
        self.resolver = resolver
        self.cookie_var = get_settings().scope.cookie_var
        self.cookie = cookie or uuid.uuid4().hex
        self.decorator: ContainerExecDecorator | None = None
        self.launcher: DecoratedLauncher | None = None

    # ------------------------------------------------------------------

    def start(self) -> DecoratedLauncher:
        # Create before docker does, otherwise it may end up owned by root
        self.workspace.mkdir(parents=True, exist_ok=True)
        user = self.user
        if user is None:
            client = self.client or DockerClient.for_tool(self.tool_name, self.baseline_env)
            user = client.whoami()
        context = DecoratorContext(
            container_id=self.container_id,
            user=user,
            baseline_env=self.baseline_env,
            workspace=str(self.workspace),
            tool_name=self.tool_name,
        )
        return self._install(context)

    def _install(self, context: DecoratorContext) -> DecoratedLauncher:
        self.decorator = ContainerExecDecorator(context, self.resolver)
        self.launcher = DecoratedLauncher(self.inner, [self.tag_request, self.decorator])
        logger.info(
            "Entering container scope",
            container=context.container_id[:12],
            user=context.user,
            workspace=context.workspace,
        )
        return self.launcher

    def tag_request(self, request: LaunchRequest) -> LaunchRequest:
        """Add the scope cookie to the request's environment."""
        return dataclasses.replace(request, env={**request.env, self.cookie_var: self.cookie})

    @property
    def fingerprint(self) -> dict[str, str]:
        return {self.cookie_var: self.cookie}

    def abort(self) -> list[str]:
        """Kill every process this scope started in the container."""
        if self.decorator is None:
            return []
        logger.warning("Aborting container scope", container=self.container_id[:12])
        return self.decorator.kill(self.inner, self.fingerprint)

    # -- resume ---------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        if self.decorator is None:
            raise RuntimeError("Scope has not been started")
        return {"context": self.decorator.context.to_snapshot(), "cookie": self.cookie}

    @classmethod
    def resume(
        cls,
        raw: Mapping[str, Any],
        *,
        inner: Launcher | None = None,
        resolver: ExecutableResolver = resolve_executable,
    ) -> ContainerScope:
        """Rebuild a started scope from snapshot() output, e.g. after a restart."""
        context = DecoratorContext.from_snapshot(raw["context"])
        scope = cls(
            context.container_id,
            workspace=context.workspace or ".",
            user=context.user,
            tool_name=context.tool_name,
            baseline_env=context.baseline_env,
            inner=inner,
            resolver=resolver,
            cookie=raw["cookie"],
        )
        scope._install(context)
        return scope

    # -- context manager ------------------------------------------------

    def __enter__(self) -> DecoratedLauncher:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.abort()
