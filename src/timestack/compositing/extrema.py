"""Lighten and darken accumulation (per-channel maximum / minimum)."""

from __future__ import annotations

import numpy as np

from timestack.pipeline.accumulator import Accumulator, AccumulatorState


def _lowest(dtype: np.dtype) -> float | int:
    if np.issubdtype(dtype, np.integer):
        return int(np.iinfo(dtype).min)
    return -np.inf


def _highest(dtype: np.dtype) -> float | int:
    if np.issubdtype(dtype, np.integer):
        return int(np.iinfo(dtype).max)
    return np.inf


class LightenAccumulator(Accumulator):
    """Keep the brightest sample seen at each pixel and channel."""

    name = "lighten"
    order_independent = True

    def _initial_buffer(self, shape: tuple[int, int, int], sample_dtype: np.dtype) -> np.ndarray:
        return np.full(shape, _lowest(sample_dtype), dtype=sample_dtype)

    def fold(self, state: AccumulatorState, pixels: np.ndarray, position: int) -> None:
        np.maximum(state.buffer, pixels, out=state.buffer)

    def merge(self, target: AccumulatorState, source: AccumulatorState) -> None:
        np.maximum(target.buffer, source.buffer, out=target.buffer)
        target.frame_count += source.frame_count

    def finalize(self, state: AccumulatorState) -> np.ndarray:
        return state.buffer


class DarkenAccumulator(Accumulator):
    """Keep the darkest sample seen at each pixel and channel."""

    name = "darken"
    order_independent = True

    def _initial_buffer(self, shape: tuple[int, int, int], sample_dtype: np.dtype) -> np.ndarray:
        return np.full(shape, _highest(sample_dtype), dtype=sample_dtype)

    def fold(self, state: AccumulatorState, pixels: np.ndarray, position: int) -> None:
        np.minimum(state.buffer, pixels, out=state.buffer)

    def merge(self, target: AccumulatorState, source: AccumulatorState) -> None:
        np.minimum(target.buffer, source.buffer, out=target.buffer)
        target.frame_count += source.frame_count

    def finalize(self, state: AccumulatorState) -> np.ndarray:
        return state.buffer
