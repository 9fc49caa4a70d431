"""`timestack run` command."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from pathlib import Path
from typing import Annotated, Any

import tyro

from timestack.config.loader import (
    load_composite_config,
    load_job_config,
    validate_config,
    validate_job,
)
from timestack.config.schema import CompositeConfig, GradientConfig, ModeName, ResizePolicy
from timestack.ingest.scanner import iter_frames, scan_inputs
from timestack.observability.logging import configure_logging, get_logger, log_event
from timestack.pipeline.executor import composite
from timestack.storage.images import mask_path_for, save_image, save_mask


_LOGGER = get_logger("timestack.cli")


@dataclass(slots=True)
class RunCommand:
    """Composite image files (or directories of frames) into one image."""

    inputs: Annotated[tuple[Path, ...], tyro.conf.Positional] = ()
    job: Path | None = None
    """Job file (.json) or `module_or_path:attribute` reference to a JobConfig."""
    config: str | None = None
    """Composite config file (.json) or `module_or_path:attribute` reference."""
    output: Path | None = None
    mode: ModeName | None = None
    gradient: str | None = None
    """Gradient preset for time-gradient mode."""
    resize_policy: ResizePolicy | None = None
    threads: int | None = None
    save_masks: bool = False
    """Write each frame's effective slices mask next to it as `<stem>_mask.png`."""
    glob: str = "*"
    log_level: str = "INFO"


def _apply_overrides(cfg: CompositeConfig, command: RunCommand) -> CompositeConfig:
    overrides: dict[str, Any] = {}
    if command.mode is not None:
        overrides["mode"] = command.mode
    if command.gradient is not None:
        overrides["gradient"] = GradientConfig(preset=command.gradient)
    if command.resize_policy is not None:
        overrides["resize_policy"] = command.resize_policy
    if command.threads is not None:
        overrides["thread_count"] = command.threads
    if command.save_masks:
        overrides["slices"] = replace(cfg.slices, save_masks=True)
    return replace(cfg, **overrides) if overrides else cfg


def execute(command: RunCommand) -> None:
    configure_logging(command.log_level)

    masks: dict[Path, Path] = {}
    if command.job is not None:
        job = load_job_config(str(command.job))
        job.composite = _apply_overrides(job.composite, command)
        validate_job(job)
        inputs = [Path(item) for item in job.inputs] + list(command.inputs)
        output = command.output or Path(job.output)
        masks = {Path(image): Path(mask) for image, mask in job.masks.items()}
        cfg = job.composite
    else:
        cfg = _apply_overrides(load_composite_config(command.config), command)
        inputs = list(command.inputs)
        if command.output is None:
            raise ValueError("--output is required when no job file is given")
        output = command.output

    validate_config(cfg)
    if not inputs:
        raise ValueError("No inputs given; pass image files, directories or a job file")

    scan = scan_inputs(inputs, glob=command.glob, masks=masks)
    if scan.missing_indices:
        log_event(
            _LOGGER,
            "sequence_gaps",
            level=logging.WARNING,
            missing=scan.missing_indices[:20],
            missing_count=len(scan.missing_indices),
        )

    result = composite(iter_frames(scan), cfg)
    save_image(result.pixels, output)
    if result.masks is not None:
        for ref, mask in zip(scan.frames, result.masks):
            save_mask(mask, mask_path_for(ref.path))
        log_event(_LOGGER, "masks_saved", count=len(result.masks))
    print(f"run frames={result.frame_count} mode={result.mode} output={output}")
