"""Average accumulation via an exact running sum and frame count.

Integer samples sum in int64. Float samples are clamped to [0, 1] and held
as a fixed-point value with 62 fractional bits, split across two int64 limbs
of 31 bits each. Both sums are exact, so every fold and merge order gives the
same bits.
"""

from __future__ import annotations

import numpy as np

from timestack.pipeline.accumulator import Accumulator, AccumulatorState


LIMB_BITS = 31
FIXED_POINT_BITS = 2 * LIMB_BITS
_LIMB_SCALE = float(1 << LIMB_BITS)


def split_fixed_point(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Split float samples into (high, low) limbs in units of 2**-62.

    Scaling by a power of two, `floor` and taking the fraction are exact in
    float64, so only bits below 2**-62 are rounded.
    """

    scaled = np.clip(np.asarray(pixels, dtype=np.float64), 0.0, 1.0) * _LIMB_SCALE
    high = np.floor(scaled)
    low = np.rint((scaled - high) * _LIMB_SCALE)
    return high.astype(np.int64), low.astype(np.int64)


def _is_fixed_point(sample_dtype: np.dtype) -> bool:
    return not np.issubdtype(sample_dtype, np.integer)


class AverageAccumulator(Accumulator):
    """Arithmetic mean of every frame at each pixel and channel."""

    name = "average"
    order_independent = True

    def _initial_buffer(self, shape: tuple[int, int, int], sample_dtype: np.dtype) -> np.ndarray:
        return np.zeros(shape, dtype=np.int64)

    def _initial_aux(
        self, shape: tuple[int, int, int], sample_dtype: np.dtype
    ) -> dict[str, np.ndarray]:
        if _is_fixed_point(sample_dtype):
            return {"low": np.zeros(shape, dtype=np.int64)}
        return {}

    def fold(self, state: AccumulatorState, pixels: np.ndarray, position: int) -> None:
        if not _is_fixed_point(state.sample_dtype):
            np.add(state.buffer, pixels, out=state.buffer)
            return
        high, low = split_fixed_point(pixels)
        np.add(state.buffer, high, out=state.buffer)
        np.add(state.aux["low"], low, out=state.aux["low"])

    def merge(self, target: AccumulatorState, source: AccumulatorState) -> None:
        np.add(target.buffer, source.buffer, out=target.buffer)
        if "low" in target.aux:
            np.add(target.aux["low"], source.aux["low"], out=target.aux["low"])
        target.frame_count += source.frame_count

    def finalize(self, state: AccumulatorState) -> np.ndarray:
        if state.frame_count <= 0:
            raise ValueError("Cannot average an accumulator with no frames")
        if not _is_fixed_point(state.sample_dtype):
            return state.buffer.astype(np.float64) / float(state.frame_count)
        total = state.buffer.astype(np.float64) * _LIMB_SCALE + state.aux["low"].astype(np.float64)
        return total / _LIMB_SCALE / _LIMB_SCALE / float(state.frame_count)
