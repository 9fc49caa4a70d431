"""Tyro CLI application entrypoint."""

from __future__ import annotations

import sys
from typing import Annotated

import tyro

from timestack.cli import commands_check, commands_example, commands_run
from timestack.errors import CompositeError


TopLevelCommand = Annotated[
    commands_run.RunCommand,
    tyro.conf.subcommand(name="run"),
] | Annotated[
    commands_check.CheckCommand,
    tyro.conf.subcommand(name="check"),
] | Annotated[
    commands_example.ExampleCommand,
    tyro.conf.subcommand(name="example"),
]


def dispatch(command: TopLevelCommand) -> None:
    """Dispatch parsed top-level command object."""

    if isinstance(command, commands_run.RunCommand):
        commands_run.execute(command)
        return
    if isinstance(command, commands_check.CheckCommand):
        commands_check.execute(command)
        return
    if isinstance(command, commands_example.ExampleCommand):
        commands_example.execute(command)
        return
    raise TypeError(f"Unsupported command type: {type(command).__name__}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run requested command."""

    command = tyro.cli(TopLevelCommand, args=argv)
    try:
        dispatch(command)
    except (CompositeError, OSError, ValueError, TypeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
