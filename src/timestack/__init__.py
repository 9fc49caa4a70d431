"""timestack package entrypoint."""

from timestack.errors import (
    CompositeError,
    DimensionMismatchError,
    EmptyInputError,
    UnknownModeError,
    WorkerFailureError,
)
from timestack.pipeline.executor import composite
from timestack.pipeline.frame import CompositeResult, Frame


__all__ = [
    "CompositeError",
    "CompositeResult",
    "DimensionMismatchError",
    "EmptyInputError",
    "Frame",
    "UnknownModeError",
    "WorkerFailureError",
    "composite",
    "main",
]


def main() -> None:
    """Run the timestack CLI."""

    from timestack.cli.app import main as _cli_main

    _cli_main()
