"""Entry point for `python -m dockwork` / `dockwork`.

Subcommands:
    dockwork run [OPTIONS] IMAGE [-- COMMAND...]         Start a build container, print its id
    dockwork inside [OPTIONS] CONTAINER -- COMMAND...    Run one command inside a container

Options go before IMAGE / CONTAINER; everything after it is the command.
"""

from __future__ import annotations

import argparse
import os
import sys

from dockwork.config import get_settings
from dockwork.docker import DockerClient, DockerCommandError, ExecutableResolutionError
from dockwork.logger import install_excepthook, logger, set_level
from dockwork.provisioner import VersionError, provision_container
from dockwork.scope import ContainerScope
from dockwork.types import LaunchRequest


def _command(rest: list[str]) -> list[str]:
    return rest[1:] if rest[:1] == ["--"] else rest


def _env_pair(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    return key, value


def _run(args: argparse.Namespace) -> int:
    host_env = dict(os.environ)
    # -e values override the host environment
    env = {**host_env, **dict(args.env)}
    client = DockerClient.for_tool(args.tool, host_env)
    container_id = provision_container(
        client,
        args.image,
        workspace=args.workspace,
        command=_command(args.command) or None,
        entrypoint=args.entrypoint,
        args=args.args,
        user=args.user,
        include_volumes=False if args.no_volumes else None,
        include_environment=True if args.include_environment or args.env else None,
        env=env,
        host_env=host_env,
    )
    print(container_id)
    return 0


def _inside(args: argparse.Namespace) -> int:
    command = _command(args.command)
    if not command:
        print("Error: no command given (use: dockwork inside CONTAINER -- COMMAND...)", file=sys.stderr)
        return 2

    scope = ContainerScope(
        args.container,
        workspace=args.workspace,
        user=args.user,
        tool_name=args.tool,
    )
    with scope as launcher:
        proc = launcher.launch(
            LaunchRequest(argv=tuple(command), env=dict(os.environ), cwd=str(scope.workspace))
        )
        return proc.wait()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="dockwork",
        description="Run build steps inside Docker containers",
    )
    parser.add_argument("--tool", default=None, help="Named docker tool from [docker.tools]")
    sub = parser.add_subparsers(dest="command_name", required=True)

    run = sub.add_parser("run", help="Start a build container and print its id")
    run.add_argument("image")
    run.add_argument("--workspace", default=os.getcwd())
    run.add_argument("--user", default=None)
    run.add_argument("--entrypoint", default=None)
    run.add_argument("--args", default=None, help="Extra `docker run` arguments")
    run.add_argument("--no-volumes", action="store_true", help="Do not mount the workspace")
    run.add_argument(
        "--include-environment",
        action="store_true",
        help="Pass variables that differ from the host environment",
    )
    run.add_argument(
        "-e",
        "--env",
        type=_env_pair,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set a variable for the build (repeatable, implies --include-environment)",
    )
    run.add_argument("command", nargs=argparse.REMAINDER)

    inside = sub.add_parser("inside", help="Run a command inside a running container")
    inside.add_argument("container")
    inside.add_argument("--workspace", default=os.getcwd())
    inside.add_argument("--user", default=None)
    inside.add_argument("command", nargs=argparse.REMAINDER)

    args = parser.parse_args()

    install_excepthook()
    set_level(get_settings().logging.level)

    handler = _run if args.command_name == "run" else _inside
    try:
        code = handler(args)
    except (VersionError, ExecutableResolutionError, DockerCommandError) as exc:
        logger.error(str(exc))
        code = 1
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
