"""Process launching and the container-exec decorator.

A launcher turns a LaunchRequest into a running process. Decoration is an
explicit, ordered list of request transforms applied before the innermost
launcher sees the request:

    launcher = DecoratedLauncher(HostLauncher(), [tag_cookie, ContainerExecDecorator(ctx)])
    proc = launcher.launch(LaunchRequest(argv=("make", "test"), env=os.environ))

Transforms never mutate a request; each returns a new one.
"""

from __future__ import annotations

import dataclasses
import shlex
import subprocess
from collections.abc import Callable, Mapping, Sequence
from functools import cached_property
from typing import Protocol, runtime_checkable

from dockwork.docker import resolve_executable
from dockwork.environment import diff_environment, env_tokens
from dockwork.logger import logger
from dockwork.reaper import kill_container_processes
from dockwork.types import DecoratorContext, LaunchRequest

RequestTransform = Callable[[LaunchRequest], LaunchRequest]
ExecutableResolver = Callable[[str | None, Mapping[str, str]], str]


@runtime_checkable
class Launcher(Protocol):
    """Anything that can start a LaunchRequest."""

    def launch(self, request: LaunchRequest) -> subprocess.Popen[str]: ...


class HostLauncher:
    """Spawns requests directly on this host."""

    def launch(self, request: LaunchRequest) -> subprocess.Popen[str]:
        if not request.quiet:
            logger.info("$ " + shlex.join(request.display_argv()), cwd=request.cwd)
        return subprocess.Popen(
            list(request.argv),
            env=dict(request.env) or None,
            cwd=request.cwd,
            stdin=request.stdin,
            stdout=request.stdout,
            stderr=request.stderr,
            text=True,
        )


class DecoratedLauncher:
    """Applies ``transforms`` first to last, then delegates to ``inner``."""

    def __init__(self, inner: Launcher, transforms: Sequence[RequestTransform] = ()) -> None:
        self.inner = inner
        self.transforms: tuple[RequestTransform, ...] = tuple(transforms)

    def decorate(self, transform: RequestTransform) -> DecoratedLauncher:
        """New launcher with *transform* appended to the chain."""
        return DecoratedLauncher(self.inner, (*self.transforms, transform))

    def rewrite(self, request: LaunchRequest) -> LaunchRequest:
        for transform in self.transforms:
            request = transform(request)
        return request

    def launch(self, request: LaunchRequest) -> subprocess.Popen[str]:
        return self.inner.launch(self.rewrite(request))


class ContainerExecDecorator:
    """Rewrites a request to run through ``docker exec`` in the scope's container.

    The rewritten argv is::

        <docker> exec -t -u <user> <container> env KEY=VALUE... <original argv>

    where the KEY=VALUE tokens are the request's variables that differ from
    the baseline, sorted.
    """

    def __init__(
        self,
        context: DecoratorContext,
        resolver: ExecutableResolver = resolve_executable,
    ) -> None:
        self.context = context
        self._resolver = resolver

    @cached_property
    def executable(self) -> str:
        return self._resolver(self.context.tool_name, self.context.baseline_env)

    def prefix(self) -> list[str]:
        ctx = self.context
        return [self.executable, "exec", "-t", "-u", ctx.user, ctx.container_id, "env"]

    def __call__(self, request: LaunchRequest) -> LaunchRequest:
        prefix = self.prefix()
        prefix.extend(env_tokens(diff_environment(request.env, self.context.baseline_env)))

        ws = self.context.workspace
        if ws is not None and request.cwd is not None and request.cwd != ws:
            # exec has no per-call working directory; the container's workdir wins
            logger.warning(
                "Working directory will be the workspace, not the requested cwd",
                workspace=ws,
                cwd=request.cwd,
            )

        masks = request.masks
        if masks is not None:
            masks = (False,) * len(prefix) + masks

        return dataclasses.replace(request, argv=(*prefix, *request.argv), masks=masks)

    def kill(self, launcher: Launcher, fingerprint: Mapping[str, str]) -> list[str]:
        """Kill container processes matching *fingerprint*, using the undecorated *launcher*."""
        return kill_container_processes(
            launcher,
            self.executable,
            self.context.container_id,
            fingerprint,
            env=self.context.baseline_env,
        )
