"""Best-effort termination of a phase's processes inside its container.

``ps -A -o pid,command e`` prints each process's command line followed by
its environment, so a process started with ``env KEY=VALUE ...`` can be
recognised by the KEY=VALUE pairs it was tagged with.

The match is a raw substring test on the whole line: a process whose argv
happens to contain ``KEY=VALUE`` matches too.
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from typing import TYPE_CHECKING

from dockwork.docker import DockerCommandError
from dockwork.logger import logger
from dockwork.types import LaunchRequest

if TYPE_CHECKING:
    from dockwork.launcher import Launcher


class ReapExecError(DockerCommandError):
    """``ps`` or ``kill`` inside the container exited non-zero."""


def select_pids(ps_output: str, fingerprint: Mapping[str, str]) -> list[str]:
    """Pids of the ``ps`` lines containing every ``key=value`` of *fingerprint*, in order."""
    needles = [f"{key}={value}" for key, value in fingerprint.items()]
    pids: list[str] = []
    for line in ps_output.split("\n"):
        if not all(needle in line for needle in needles):
            continue
        pid, sep, _ = line.strip().partition(" ")
        # Skips blank lines and the "PID COMMAND" header
        if not sep or not pid.isdigit():
            continue
        pids.append(pid)
    return pids


def _exec(
    launcher: Launcher, argv: list[str], env: Mapping[str, str] | None
) -> tuple[int, str, str]:
    proc = launcher.launch(
        LaunchRequest(
            argv=tuple(argv),
            env=dict(env or {}),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            quiet=True,
        )
    )
    stdout, stderr = proc.communicate()
    return proc.returncode, stdout or "", stderr or ""


def kill_container_processes(
    launcher: Launcher,
    executable: str,
    container_id: str,
    fingerprint: Mapping[str, str],
    env: Mapping[str, str] | None = None,
) -> list[str]:
    """Kill the processes in *container_id* that match *fingerprint*.

    *launcher* must be the undecorated one, these commands run on the host.
    Returns the pids that were killed (empty when nothing matched, in which
    case no kill command is issued).

    Raises:
        ReapExecError: ``ps`` or ``kill`` failed
    """
    code, out, err = _exec(
        launcher, [executable, "exec", container_id, "ps", "-A", "-o", "pid,command", "e"], env
    )
    if code != 0:
        raise ReapExecError("exec ps", err.strip(), code)

    pids = select_pids(out, fingerprint)
    logger.debug("Killing container processes", container=container_id[:12], pids=pids)
    if not pids:
        return []

    code, _, err = _exec(launcher, [executable, "exec", container_id, "kill", *pids], env)
    if code != 0:
        raise ReapExecError("exec kill", err.strip(), code)
    logger.info("Killed container processes", container=container_id[:12], pids=pids)
    return pids
