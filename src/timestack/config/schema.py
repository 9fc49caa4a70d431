"""Dataclass-based configuration schema for timestack."""

from dataclasses import dataclass, field
from typing import Literal


ModeName = Literal["lighten", "darken", "average", "time-gradient", "slices"]
ResizePolicy = Literal["scale-to-first", "reject"]
Resample = Literal["bilinear", "area"]
Parallelism = Literal["auto", "spatial", "frame-batches"]
Ranking = Literal["luminance", "channel", "weighted"]
Comparison = Literal["greater", "greater-equal"]
SliceShape = Literal[
    "vertical-flat",
    "horizontal-flat",
    "vertical-logistic",
    "horizontal-logistic",
]

GradientStop = tuple[float, tuple[float, float, float]]


@dataclass(frozen=True, slots=True)
class GradientConfig:
    """Colour ramp over normalized time.

    Explicit `stops` take precedence over the named `preset`.
    """

    preset: str = "spectrum"
    stops: tuple[GradientStop, ...] | None = None


@dataclass(frozen=True, slots=True)
class SliceConfig:
    """Positional mask options for the slices mode.

    `save_masks` asks the run to hand back every frame's effective mask so it
    can be written next to its input as `<stem>_mask.png`.
    """

    shape: SliceShape = "vertical-logistic"
    k: float = 0.01
    normalize: bool = True
    save_masks: bool = False


@dataclass(frozen=True, slots=True)
class CompositeConfig:
    """Options for one composite run."""

    mode: ModeName = "lighten"
    gradient: GradientConfig = field(default_factory=GradientConfig)
    resize_policy: ResizePolicy = "scale-to-first"
    resample: Resample = "bilinear"
    thread_count: int | None = None
    parallelism: Parallelism = "auto"
    frame_batch_size: int = 8
    ranking: Ranking = "luminance"
    channel_weights: tuple[float, ...] | None = None
    comparison: Comparison = "greater"
    tint_strength: float = 1.0
    slices: SliceConfig = field(default_factory=SliceConfig)


@dataclass(slots=True)
class JobConfig:
    """A composite run bound to input files and an output path.

    `masks` maps an input image path to a mask image of the same size whose
    first channel weights that frame in the slices mode.
    """

    inputs: list[str]
    output: str
    composite: CompositeConfig = field(default_factory=CompositeConfig)
    masks: dict[str, str] = field(default_factory=dict)
