"""`timestack check` command."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import tyro

from timestack.config.loader import load_job_config, validate_job
from timestack.ingest.scanner import scan_inputs


@dataclass(slots=True)
class CheckCommand:
    """Validate a job file without compositing."""

    job: Annotated[str, tyro.conf.Positional]


def execute(command: CheckCommand) -> None:
    job = load_job_config(command.job)
    mode = validate_job(job)
    masks = {Path(image): Path(mask) for image, mask in job.masks.items()}
    scan = scan_inputs([Path(item) for item in job.inputs], masks=masks)
    if scan.frame_count == 0:
        raise ValueError(f"Job {command.job} lists no image files")
    print(
        f"check ok job={command.job} frames={scan.frame_count} mode={mode.value}. "
        "Frames are only decoded during a run, so unreadable images are not detected here."
    )
