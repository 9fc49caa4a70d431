"""`timestack example` command."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import count
from pathlib import Path
from typing import Annotated

import tyro

from timestack.config.loader import example_job_payload
from timestack.storage.atomic import atomic_write_json


EXAMPLE_FILE_STEM = "example_job"


@dataclass(slots=True)
class ExampleCommand:
    """Write a sample job file, optionally listing the given images."""

    images: Annotated[tuple[Path, ...], tyro.conf.Positional] = ()
    directory: Path = Path(".")


def next_example_path(directory: Path) -> Path:
    """First `example_job<N>.json` in `directory` that does not exist yet."""

    return next(
        candidate
        for candidate in (directory / f"{EXAMPLE_FILE_STEM}{num}.json" for num in count(1))
        if not candidate.exists()
    )


def execute(command: ExampleCommand) -> Path:
    for image in command.images:
        if not image.is_file():
            raise FileNotFoundError(f"Input file does not exist: {image}")

    images = [str(image) for image in command.images] or None
    path = next_example_path(command.directory)
    atomic_write_json(path, example_job_payload(images))
    print(f"example written path={path}")
    return path
