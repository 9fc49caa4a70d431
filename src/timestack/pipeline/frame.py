"""Frame buffers and the finished composite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from timestack.errors import DimensionMismatchError


SUPPORTED_DTYPES = (np.dtype(np.uint8), np.dtype(np.uint16), np.dtype(np.float32), np.dtype(np.float64))


def sample_max(dtype: np.dtype) -> float:
    """Return the largest valid sample value for a pixel dtype."""

    dtype = np.dtype(dtype)
    if np.issubdtype(dtype, np.integer):
        return float(np.iinfo(dtype).max)
    return 1.0


def has_alpha(channel_count: int) -> bool:
    """Grey+alpha and RGBA layouts carry alpha in the last channel."""

    return channel_count in (2, 4)


def color_channels(channel_count: int) -> int:
    return channel_count - 1 if has_alpha(channel_count) else channel_count


def to_sample_dtype(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Clamp and round accumulated values into the output sample range."""

    dtype = np.dtype(dtype)
    if values.dtype == dtype:
        return values.copy()
    if np.issubdtype(dtype, np.integer):
        rounded = np.floor(np.asarray(values, dtype=np.float64) + 0.5)
        return np.clip(rounded, 0.0, sample_max(dtype)).astype(dtype)
    return np.clip(values, 0.0, 1.0).astype(dtype)


@dataclass(frozen=True, slots=True)
class Frame:
    """One decoded photograph and its capture-order index.

    `mask` optionally carries per-pixel blend weights in [0, 1], shaped
    (H, W, 1), for the slices mode.
    """

    index: int
    pixels: np.ndarray
    mask: np.ndarray | None = None

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Frame index must be >= 0, got {self.index}")
        pixels = np.asarray(self.pixels)
        if pixels.ndim == 2:
            pixels = pixels[:, :, np.newaxis]
        if pixels.ndim != 3:
            raise ValueError(f"Frame pixels must have 2 or 3 dims, got shape {pixels.shape}")
        height, width, channels = pixels.shape
        if height < 1 or width < 1:
            raise ValueError(f"Frame {self.index} is empty: shape {pixels.shape}")
        if not 1 <= channels <= 4:
            raise ValueError(f"Frame {self.index} has {channels} channels; expected 1-4")
        if pixels.dtype not in SUPPORTED_DTYPES:
            raise ValueError(f"Frame {self.index} has unsupported sample dtype {pixels.dtype}")
        if pixels is self.pixels and pixels.flags.writeable:
            pixels = pixels.view()
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)
        if self.mask is not None:
            object.__setattr__(self, "mask", self._checked_mask(height, width))

    def _checked_mask(self, height: int, width: int) -> np.ndarray:
        mask = np.asarray(self.mask, dtype=np.float64)
        if mask.ndim == 2:
            mask = mask[:, :, np.newaxis]
        if mask.ndim != 3 or mask.shape[2] != 1:
            raise ValueError(f"Frame {self.index} mask must be (H, W) or (H, W, 1), got {mask.shape}")
        if mask.shape[:2] != (height, width):
            raise DimensionMismatchError(
                self.index,
                (width, height, 1),
                (mask.shape[1], mask.shape[0], 1),
                detail="mask size differs from the frame",
            )
        mask = np.clip(mask, 0.0, 1.0)
        mask.flags.writeable = False
        return mask

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channel_count(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def shape(self) -> tuple[int, int, int]:
        """(width, height, channel_count)."""

        return (self.width, self.height, self.channel_count)

    @property
    def dtype(self) -> np.dtype:
        return self.pixels.dtype

    @property
    def sample_max(self) -> float:
        return sample_max(self.pixels.dtype)


@dataclass(slots=True)
class CompositeResult:
    """Finished output buffer handed to the encoder."""

    pixels: np.ndarray
    mode: str
    frame_count: int
    time_positions: np.ndarray | None = None
    masks: list[np.ndarray] | None = None
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channel_count(self) -> int:
        return int(self.pixels.shape[2])

    def time_map(self) -> np.ndarray | None:
        """Normalized time position (0.0-1.0) of each recorded sample."""

        if self.time_positions is None:
            return None
        if self.frame_count <= 1:
            return np.zeros(self.time_positions.shape, dtype=np.float64)
        return self.time_positions.astype(np.float64) / float(self.frame_count - 1)
