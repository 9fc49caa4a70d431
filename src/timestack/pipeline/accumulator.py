"""Accumulator state and the per-pixel reduction interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np


@dataclass(slots=True)
class AccumulatorState:
    """Running per-pixel state for one image or one row band of it.

    `buffer` and every `aux` array share their leading (rows, width) shape.
    States returned by `region` hold views into the parent arrays, so a worker
    writing its region writes straight into the shared output.
    """

    width: int
    height: int
    channel_count: int
    sample_dtype: np.dtype
    buffer: np.ndarray
    aux: dict[str, np.ndarray] = field(default_factory=dict)
    frame_count: int = 0
    row_start: int = 0

    @property
    def row_stop(self) -> int:
        return self.row_start + int(self.buffer.shape[0])

    @property
    def rows(self) -> slice:
        return slice(self.row_start, self.row_stop)

    def region(self, start: int, stop: int) -> AccumulatorState:
        """Return a state over image rows [start, stop) backed by views."""

        if not self.row_start <= start <= stop <= self.row_stop:
            raise ValueError(
                f"Region rows {start}:{stop} outside state rows {self.row_start}:{self.row_stop}"
            )
        local = slice(start - self.row_start, stop - self.row_start)
        return AccumulatorState(
            width=self.width,
            height=self.height,
            channel_count=self.channel_count,
            sample_dtype=self.sample_dtype,
            buffer=self.buffer[local],
            aux={key: value[local] for key, value in self.aux.items()},
            frame_count=self.frame_count,
            row_start=start,
        )


class Accumulator(ABC):
    """Per-pixel reduction rule applied along the temporal axis."""

    name: ClassVar[str]
    order_independent: ClassVar[bool]

    def create_state(
        self,
        *,
        width: int,
        height: int,
        channel_count: int,
        sample_dtype: np.dtype,
    ) -> AccumulatorState:
        """Allocate a state initialised to the rule's identity element."""

        sample_dtype = np.dtype(sample_dtype)
        shape = (height, width, channel_count)
        return AccumulatorState(
            width=width,
            height=height,
            channel_count=channel_count,
            sample_dtype=sample_dtype,
            buffer=self._initial_buffer(shape, sample_dtype),
            aux=self._initial_aux(shape, sample_dtype),
        )

    def check_layout(self, channel_count: int) -> None:
        """Reject channel layouts the rule cannot handle."""

    @abstractmethod
    def _initial_buffer(self, shape: tuple[int, int, int], sample_dtype: np.dtype) -> np.ndarray:
        ...

    def _initial_aux(
        self, shape: tuple[int, int, int], sample_dtype: np.dtype
    ) -> dict[str, np.ndarray]:
        return {}

    @abstractmethod
    def fold(self, state: AccumulatorState, pixels: np.ndarray, position: int) -> None:
        """Fold one frame's rows (already cut to `state.rows`) into `state`."""

    def merge(self, target: AccumulatorState, source: AccumulatorState) -> None:
        """Combine two partial states with the per-pixel rule."""

        raise TypeError(f"{self.name} accumulation is order-dependent and cannot be merged")

    @abstractmethod
    def finalize(self, state: AccumulatorState) -> np.ndarray:
        """Return output samples (before clamping) for a fully folded state."""

    def time_positions(self, state: AccumulatorState) -> np.ndarray | None:
        return None

    def mask_images(self, state: AccumulatorState) -> list[np.ndarray] | None:
        """Per-frame blend weights, for rules that weight frames by masks."""

        return None
