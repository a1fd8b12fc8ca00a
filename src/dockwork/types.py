"""Data models for dockwork."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import IO, Any

# Redirect targets accepted by subprocess.Popen (PIPE, DEVNULL, a file, or None)
Redirect = int | IO[Any] | None


@dataclass(frozen=True)
class LaunchRequest:
    """One subprocess the phase wants to run.

    ``masks`` is aligned with ``argv``: ``True`` marks an argument that must
    not be echoed in logs (passwords, tokens).
    """

    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    cwd: str | None = None
    masks: tuple[bool, ...] | None = None
    stdin: Redirect = None
    stdout: Redirect = None
    stderr: Redirect = None
    quiet: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "argv", tuple(self.argv))
        if self.masks is not None:
            object.__setattr__(self, "masks", tuple(bool(m) for m in self.masks))

    def display_argv(self) -> list[str]:
        """argv with masked positions replaced, for logging."""
        if self.masks is None:
            return list(self.argv)
        return [
            "********" if i < len(self.masks) and self.masks[i] else arg
            for i, arg in enumerate(self.argv)
        ]


@dataclass
class VolumePlan:
    """Where each required directory comes from in the new container.

    ``volumes_from`` is an ordered set (dict keys) of container ids.
    """

    bind_mounts: dict[str, str] = field(default_factory=dict)
    volumes_from: dict[str, None] = field(default_factory=dict)

    @property
    def volumes_from_ids(self) -> list[str]:
        return list(self.volumes_from)


CONTEXT_SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class DecoratorContext:
    """Everything the exec decorator needs, fixed for the lifetime of a scope."""

    container_id: str
    user: str
    baseline_env: Mapping[str, str]
    workspace: str | None = None
    tool_name: str | None = None

    def __post_init__(self) -> None:
        if not self.container_id:
            raise ValueError("container_id cannot be empty")
        object.__setattr__(self, "baseline_env", MappingProxyType(dict(self.baseline_env)))

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "version": CONTEXT_SNAPSHOT_VERSION,
            "container_id": self.container_id,
            "user": self.user,
            "baseline_env": dict(self.baseline_env),
            "workspace": self.workspace,
            "tool_name": self.tool_name,
        }

    @classmethod
    def from_snapshot(cls, raw: Mapping[str, Any]) -> DecoratorContext:
        version = raw.get("version")
        if version != CONTEXT_SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported decorator context snapshot version: {version!r}")
        return cls(
            container_id=raw["container_id"],
            user=raw["user"],
            baseline_env=dict(raw.get("baseline_env") or {}),
            workspace=raw.get("workspace"),
            tool_name=raw.get("tool_name"),
        )


@dataclass(frozen=True)
class ContainerRecord:
    """What ``docker inspect`` reports about a freshly started container."""

    container_id: str
    image_id: str = ""
    name: str = ""
    created: str = ""
    host: str = ""

    @classmethod
    def from_inspect(cls, raw: Mapping[str, Any], host: str = "") -> ContainerRecord:
        return cls(
            container_id=raw.get("Id", ""),
            image_id=raw.get("Image", ""),
            name=str(raw.get("Name", "")).lstrip("/"),
            created=raw.get("Created", ""),
            host=host,
        )


@dataclass
class RunRecord:
    """In-memory bookkeeping for one pipeline run."""

    images: list[str] = field(default_factory=list)
    containers: list[ContainerRecord] = field(default_factory=list)
