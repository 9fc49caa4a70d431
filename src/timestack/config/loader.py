"""Load and validate composite configs from JSON files or Python references."""

from __future__ import annotations

from dataclasses import asdict
import importlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any

from timestack.compositing.gradient import resolve_gradient
from timestack.config.schema import CompositeConfig, GradientConfig, JobConfig, SliceConfig
from timestack.errors import InvalidConfigError, UnknownModeError
from timestack.pipeline.modes import Mode
from timestack.pipeline.normalize import RESIZE_POLICIES
from timestack.storage.atomic import read_json


_CHOICES: dict[str, tuple[str, ...]] = {
    "resample": ("bilinear", "area"),
    "parallelism": ("auto", "spatial", "frame-batches"),
    "ranking": ("luminance", "channel", "weighted"),
    "comparison": ("greater", "greater-equal"),
}

_SLICE_SHAPES = (
    "vertical-flat",
    "horizontal-flat",
    "vertical-logistic",
    "horizontal-logistic",
)


def _load_module(module_ref: str) -> ModuleType:
    path_candidate = Path(module_ref).expanduser()
    if path_candidate.exists():
        module_name = f"_timestack_cfg_{path_candidate.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path_candidate)
        if spec is None or spec.loader is None:
            raise RuntimeError(f"Could not load module from path: {path_candidate}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(module_ref)


def _resolve_attr(obj: Any, attr_path: str) -> Any:
    value = obj
    for part in attr_path.split("."):
        value = getattr(value, part)
    return value


def load_object(reference: str) -> Any:
    """Load object by `module_or_path:attribute` reference."""

    if ":" not in reference:
        raise ValueError("Config reference must be in form 'module_or_path:attribute'.")
    module_ref, attr = reference.split(":", maxsplit=1)
    module = _load_module(module_ref)
    return _resolve_attr(module, attr)


def validate_config(config: CompositeConfig) -> Mode:
    """Check every option before any frame is touched; return the parsed mode."""

    mode = Mode.parse(config.mode)
    if config.resize_policy not in RESIZE_POLICIES:
        raise UnknownModeError("resize policy", config.resize_policy, RESIZE_POLICIES)
    for option, choices in _CHOICES.items():
        value = getattr(config, option)
        if value not in choices:
            raise UnknownModeError(option, value, choices)
    if config.slices.shape not in _SLICE_SHAPES:
        raise UnknownModeError("slice shape", config.slices.shape, _SLICE_SHAPES)

    if config.thread_count is not None and config.thread_count < 1:
        raise InvalidConfigError(f"thread_count must be >= 1, got {config.thread_count}")
    if config.frame_batch_size < 1:
        raise InvalidConfigError(f"frame_batch_size must be >= 1, got {config.frame_batch_size}")
    if not 0.0 <= config.tint_strength <= 1.0:
        raise InvalidConfigError(f"tint_strength must be within [0, 1], got {config.tint_strength}")
    if config.slices.k <= 0.0:
        raise InvalidConfigError(f"slices.k must be > 0, got {config.slices.k}")
    if config.ranking == "weighted" and not config.channel_weights:
        raise InvalidConfigError("ranking 'weighted' requires channel_weights")

    if mode is Mode.TIME_GRADIENT:
        resolve_gradient(config.gradient)
    return mode


def _gradient_from_dict(payload: dict[str, Any]) -> GradientConfig:
    stops = payload.get("stops")
    if stops is not None:
        try:
            stops = tuple((float(position), tuple(color)) for position, color in stops)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigError(f"Malformed gradient stops: {stops!r}") from exc
    return GradientConfig(preset=payload.get("preset", "spectrum"), stops=stops)


def composite_config_from_dict(payload: dict[str, Any]) -> CompositeConfig:
    """Reconstruct a CompositeConfig from a plain dictionary."""

    fields = dict(payload)
    gradient = fields.pop("gradient", None) or {}
    slices = fields.pop("slices", None) or {}
    weights = fields.pop("channel_weights", None)
    if weights is not None:
        try:
            weights = tuple(float(w) for w in weights)
        except (TypeError, ValueError) as exc:
            raise InvalidConfigError(f"Malformed channel_weights: {weights!r}") from exc
    try:
        return CompositeConfig(
            gradient=_gradient_from_dict(gradient),
            slices=SliceConfig(**slices),
            channel_weights=weights,
            **fields,
        )
    except TypeError as exc:
        raise InvalidConfigError(f"Invalid composite config: {exc}") from exc


def job_config_from_dict(payload: dict[str, Any]) -> JobConfig:
    """Reconstruct a JobConfig from a plain dictionary."""

    raw_inputs = payload.get("inputs")
    output = payload.get("output")
    if not isinstance(raw_inputs, list):
        raise InvalidConfigError("Job 'inputs' must be a list of file paths")
    if not isinstance(output, str) or not output:
        raise InvalidConfigError("Job 'output' must be a file path")

    masks = payload.get("masks") or {}
    if not isinstance(masks, dict):
        raise InvalidConfigError("Job 'masks' must map image paths to mask paths")
    masks = dict(masks)
    inputs: list[str] = []
    for item in raw_inputs:
        if isinstance(item, str):
            inputs.append(item)
        elif isinstance(item, dict) and isinstance(item.get("image"), str):
            inputs.append(item["image"])
            if item.get("mask") is not None:
                masks[item["image"]] = item["mask"]
        else:
            raise InvalidConfigError(
                f"Job inputs must be file paths or {{'image', 'mask'}} objects, got {item!r}"
            )
    if not all(isinstance(key, str) and isinstance(value, str) for key, value in masks.items()):
        raise InvalidConfigError("Job 'masks' must map image paths to mask paths")

    return JobConfig(
        inputs=inputs,
        output=output,
        composite=composite_config_from_dict(payload.get("composite", {})),
        masks=masks,
    )


def validate_job(job: JobConfig) -> Mode:
    """Validate a job's composite options and its mask files."""

    mode = validate_config(job.composite)
    if not job.masks:
        return mode
    if mode is not Mode.SLICES:
        raise InvalidConfigError(f"Mask files are only used by the slices mode, not {mode.value}")
    for image, mask in job.masks.items():
        if not Path(mask).expanduser().is_file():
            raise FileNotFoundError(f"Mask file for {image} does not exist: {mask}")
    return mode


def load_job_config(reference: str) -> JobConfig:
    """Load a JobConfig from a `.json` file or a `module_or_path:attribute` reference."""

    path = Path(reference).expanduser()
    if path.suffix.lower() == ".json":
        if not path.exists():
            raise FileNotFoundError(f"Job file does not exist: {path}")
        payload = read_json(path)
        if not isinstance(payload, dict):
            raise InvalidConfigError(f"Job file must hold a JSON object: {path}")
        return job_config_from_dict(payload)

    loaded = load_object(reference)
    if not isinstance(loaded, JobConfig):
        raise TypeError(f"Config reference must resolve to JobConfig, got {type(loaded).__name__}.")
    return loaded


def load_composite_config(reference: str | None) -> CompositeConfig:
    """Load a CompositeConfig, accepting job files and job references too."""

    if reference is None:
        return CompositeConfig()

    path = Path(reference).expanduser()
    if path.suffix.lower() == ".json":
        if not path.exists():
            raise FileNotFoundError(f"Config file does not exist: {path}")
        payload = read_json(path)
        if not isinstance(payload, dict):
            raise InvalidConfigError(f"Config file must hold a JSON object: {path}")
        if "composite" in payload:
            payload = payload["composite"]
        return composite_config_from_dict(payload)

    loaded = load_object(reference)
    if isinstance(loaded, JobConfig):
        return loaded.composite
    if not isinstance(loaded, CompositeConfig):
        raise TypeError(
            f"Config reference must resolve to CompositeConfig, got {type(loaded).__name__}."
        )
    return loaded


def example_job_payload(images: list[str] | None = None) -> dict[str, Any]:
    """Build a sample job, listing `images` or placeholder names."""

    inputs = images or ["image01.png", "image02.png", "image03.png", "image04.png"]
    job = JobConfig(
        inputs=list(inputs),
        output="stacked.png",
        composite=CompositeConfig(mode="time-gradient"),
    )
    return asdict(job)
