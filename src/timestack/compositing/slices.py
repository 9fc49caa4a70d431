"""Slice blending: each frame dominates its own stripe of the output."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from timestack.config.schema import SliceConfig
from timestack.pipeline.accumulator import Accumulator, AccumulatorState


def logistic(distance: np.ndarray, k: float) -> np.ndarray:
    """Logistic falloff; larger `k` gives a narrower band."""

    return 1.0 / (np.exp(-k * distance) + 1.0)


def stripe_mask(length: int, frame_count: int, position: int) -> np.ndarray:
    """1.0 inside stripe `position` of `frame_count` equal stripes, else 0.0."""

    # Fractional stripe width so remainders are spread instead of dropped.
    band = length / frame_count
    start = int(band * position)
    stop = int(band * (position + 1))
    mask = np.zeros(length, dtype=np.float64)
    mask[start:stop] = 1.0
    return mask


def logistic_mask(length: int, frame_count: int, position: int, k: float) -> np.ndarray:
    """Soft band centred on stripe `position`, peaking at 0.5."""

    band = length / frame_count
    center = int(position * band + band / 2.0)
    distance = np.abs(np.arange(length, dtype=np.float64) - center)
    return 1.0 - logistic(distance, k * band)


class SliceAccumulator(Accumulator):
    """Weighted sum of frames under positional masks.

    A frame that brings its own mask (loaded from a mask file) is weighted by
    that mask instead of the generated one.
    """

    name = "slices"
    order_independent = False

    def __init__(
        self,
        config: SliceConfig,
        frame_count: int,
        masks: Sequence[np.ndarray | None] | None = None,
    ) -> None:
        if frame_count < 1:
            raise ValueError(f"frame_count must be >= 1, got {frame_count}")
        if masks is not None and len(masks) != frame_count:
            raise ValueError(f"Expected {frame_count} masks, got {len(masks)}")
        self.config = config
        self.frame_count = frame_count
        self.masks = list(masks) if masks is not None else [None] * frame_count

    @property
    def vertical(self) -> bool:
        return self.config.shape.startswith("vertical")

    def _initial_buffer(self, shape: tuple[int, int, int], sample_dtype: np.dtype) -> np.ndarray:
        return np.zeros(shape, dtype=np.float64)

    def _initial_aux(
        self, shape: tuple[int, int, int], sample_dtype: np.dtype
    ) -> dict[str, np.ndarray]:
        return {"weight": np.zeros(shape[:2] + (1,), dtype=np.float64)}

    def mask(self, state: AccumulatorState, position: int) -> np.ndarray:
        """Mask for one frame, broadcastable against the state's buffer."""

        supplied = self.masks[position]
        if supplied is not None:
            return supplied[state.row_start : state.row_stop]

        length = state.width if self.vertical else state.height
        if self.config.shape.endswith("flat"):
            line = stripe_mask(length, self.frame_count, position)
        else:
            line = logistic_mask(length, self.frame_count, position, self.config.k)
        if self.vertical:
            return line[np.newaxis, :, np.newaxis]
        return line[state.row_start : state.row_stop, np.newaxis, np.newaxis]

    def fold(self, state: AccumulatorState, pixels: np.ndarray, position: int) -> None:
        weight = self.mask(state, position)
        state.buffer += pixels * weight
        state.aux["weight"] += weight

    def finalize(self, state: AccumulatorState) -> np.ndarray:
        if not self.config.normalize:
            return state.buffer
        weight = state.aux["weight"]
        out = np.zeros_like(state.buffer)
        np.divide(state.buffer, weight, out=out, where=np.broadcast_to(weight > 0.0, out.shape))
        return out

    def mask_images(self, state: AccumulatorState) -> list[np.ndarray]:
        """Effective (H, W, 1) weight of every frame, normalized like the blend."""

        shape = state.buffer.shape[:2] + (1,)
        weight = state.aux["weight"]
        images = []
        for position in range(self.frame_count):
            image = np.broadcast_to(self.mask(state, position), shape).astype(np.float64)
            if self.config.normalize:
                image = np.divide(image, weight, out=np.zeros(shape), where=weight > 0.0)
            images.append(image)
        return images
