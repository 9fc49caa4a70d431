"""Compositing modes and accumulator selection."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

import numpy as np

from timestack.compositing.average import AverageAccumulator
from timestack.compositing.extrema import DarkenAccumulator, LightenAccumulator
from timestack.compositing.gradient import TimeGradientAccumulator, resolve_gradient
from timestack.compositing.slices import SliceAccumulator
from timestack.config.schema import CompositeConfig
from timestack.errors import UnknownModeError
from timestack.pipeline.accumulator import Accumulator


class Mode(str, Enum):
    LIGHTEN = "lighten"
    DARKEN = "darken"
    AVERAGE = "average"
    TIME_GRADIENT = "time-gradient"
    SLICES = "slices"

    @property
    def order_independent(self) -> bool:
        """Whether fold order leaves the result unchanged."""

        return self in _ORDER_INDEPENDENT

    @property
    def needs_frame_count(self) -> bool:
        """Whether the accumulator must know N before the first fold."""

        return self is Mode.SLICES

    @classmethod
    def parse(cls, value: str) -> Mode:
        try:
            return cls(value)
        except ValueError:
            raise UnknownModeError("mode", value, [mode.value for mode in cls]) from None


_ORDER_INDEPENDENT = frozenset({Mode.LIGHTEN, Mode.DARKEN, Mode.AVERAGE})


def make_accumulator(
    mode: Mode,
    config: CompositeConfig,
    frame_count: int | None = None,
    masks: Sequence[np.ndarray | None] | None = None,
) -> Accumulator:
    """Return the accumulator implementing `mode`."""

    if mode is Mode.LIGHTEN:
        return LightenAccumulator()
    if mode is Mode.DARKEN:
        return DarkenAccumulator()
    if mode is Mode.AVERAGE:
        return AverageAccumulator()
    if mode is Mode.TIME_GRADIENT:
        return TimeGradientAccumulator(
            resolve_gradient(config.gradient),
            ranking=config.ranking,
            channel_weights=config.channel_weights,
            comparison=config.comparison,
            tint_strength=config.tint_strength,
        )
    if mode is Mode.SLICES:
        if frame_count is None:
            raise ValueError("slices mode needs the frame count up front")
        return SliceAccumulator(config.slices, frame_count, masks)
    raise UnknownModeError("mode", mode, [m.value for m in Mode])
