"""Temporal colour mapping: tint each pixel by when its best sample occurred."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from timestack.compositing.channels import LUMA_WEIGHTS, luminance
from timestack.config.schema import GradientConfig, GradientStop
from timestack.errors import InvalidConfigError, UnknownModeError
from timestack.pipeline.accumulator import Accumulator, AccumulatorState
from timestack.pipeline.frame import color_channels


PRESETS: dict[str, tuple[GradientStop, ...]] = {
    "spectrum": (
        (0.0, (0.0, 0.0, 1.0)),
        (0.25, (0.0, 1.0, 1.0)),
        (0.5, (0.0, 1.0, 0.0)),
        (0.75, (1.0, 1.0, 0.0)),
        (1.0, (1.0, 0.0, 0.0)),
    ),
    "fire": (
        (0.0, (0.5, 0.0, 0.0)),
        (0.5, (1.0, 0.5, 0.0)),
        (1.0, (1.0, 1.0, 0.6)),
    ),
    "ice": (
        (0.0, (0.2, 0.2, 1.0)),
        (1.0, (0.8, 1.0, 1.0)),
    ),
    "white": ((0.0, (1.0, 1.0, 1.0)),),
}


@dataclass(frozen=True, slots=True)
class Gradient:
    """Piecewise-linear colour ramp over t in [0, 1]."""

    stops: tuple[GradientStop, ...]

    @classmethod
    def from_stops(cls, stops: Sequence[Sequence]) -> Gradient:
        if not stops:
            raise InvalidConfigError("Gradient needs at least one stop")
        parsed: list[GradientStop] = []
        previous = -np.inf
        for stop in stops:
            if len(stop) != 2:
                raise InvalidConfigError(f"Gradient stop must be (position, (r, g, b)), got {stop!r}")
            position, color = stop
            position = float(position)
            color = tuple(float(c) for c in color)
            if not 0.0 <= position <= 1.0:
                raise InvalidConfigError(f"Gradient stop position {position} outside [0, 1]")
            if position < previous:
                raise InvalidConfigError("Gradient stop positions must be non-decreasing")
            if len(color) != 3 or not all(0.0 <= c <= 1.0 for c in color):
                raise InvalidConfigError(f"Gradient colour must be three values in [0, 1], got {color!r}")
            parsed.append((position, color))  # type: ignore[arg-type]
            previous = position
        return cls(stops=tuple(parsed))

    def colors_at(self, t: np.ndarray) -> np.ndarray:
        """Return RGB weights with shape `t.shape + (3,)`."""

        t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
        xs = np.array([position for position, _ in self.stops], dtype=np.float64)
        table = np.array([color for _, color in self.stops], dtype=np.float64)
        return np.stack([np.interp(t, xs, table[:, c]) for c in range(3)], axis=-1)

    def weights_at(self, t: np.ndarray) -> np.ndarray:
        """Scalar weight (colour luminance) for grey output."""

        return np.tensordot(self.colors_at(t), np.asarray(LUMA_WEIGHTS), axes=([-1], [0]))


def resolve_gradient(config: GradientConfig) -> Gradient:
    """Build the gradient named by a GradientConfig."""

    if config.stops is not None:
        return Gradient.from_stops(config.stops)
    stops = PRESETS.get(config.preset)
    if stops is None:
        raise UnknownModeError("gradient preset", config.preset, sorted(PRESETS))
    return Gradient(stops=stops)


class TimeGradientAccumulator(Accumulator):
    """Track each pixel's best sample and the frame position it came from.

    Frames must be folded in increasing position order. A later frame replaces
    the running best only when it wins the comparison, so with the default
    strict comparison the earliest frame keeps ties.
    """

    name = "time-gradient"
    order_independent = False

    def __init__(
        self,
        gradient: Gradient,
        *,
        ranking: str = "luminance",
        channel_weights: Sequence[float] | None = None,
        comparison: str = "greater",
        tint_strength: float = 1.0,
    ) -> None:
        self.gradient = gradient
        self.ranking = ranking
        self.channel_weights = tuple(channel_weights) if channel_weights is not None else None
        self.comparison = comparison
        self.tint_strength = tint_strength

    def check_layout(self, channel_count: int) -> None:
        if self.ranking != "weighted":
            return
        colors = color_channels(channel_count)
        if self.channel_weights is None or len(self.channel_weights) != colors:
            raise InvalidConfigError(
                f"Weighted ranking needs {colors} channel_weights for {channel_count}-channel frames"
            )

    def _score_channels(self, channel_count: int) -> int:
        return channel_count if self.ranking == "channel" else 1

    def _initial_buffer(self, shape: tuple[int, int, int], sample_dtype: np.dtype) -> np.ndarray:
        return np.zeros(shape, dtype=sample_dtype)

    def _initial_aux(
        self, shape: tuple[int, int, int], sample_dtype: np.dtype
    ) -> dict[str, np.ndarray]:
        score_shape = shape[:2] + (self._score_channels(shape[2]),)
        return {
            "score": np.full(score_shape, -np.inf, dtype=np.float64),
            "position": np.full(score_shape, -1, dtype=np.int32),
        }

    def _score(self, pixels: np.ndarray) -> np.ndarray:
        if self.ranking == "channel":
            return pixels.astype(np.float64)
        if self.ranking == "weighted":
            return luminance(pixels, self.channel_weights)
        return luminance(pixels)

    def fold(self, state: AccumulatorState, pixels: np.ndarray, position: int) -> None:
        score = self._score(pixels)
        best = state.aux["score"]
        if self.comparison == "greater-equal":
            wins = score >= best
        else:
            wins = score > best
        np.copyto(state.buffer, pixels, where=wins)
        np.copyto(best, score, where=wins)
        np.copyto(state.aux["position"], position, where=wins)

    def finalize(self, state: AccumulatorState) -> np.ndarray:
        positions = state.aux["position"]
        if state.frame_count > 1:
            t = positions.astype(np.float64) / float(state.frame_count - 1)
        else:
            t = np.zeros(positions.shape, dtype=np.float64)

        colors = color_channels(state.channel_count)
        best = state.buffer.astype(np.float64)
        if self.ranking == "channel":
            base = best[..., :colors]
            rgb = self.gradient.colors_at(t[..., :colors])
            if colors == 3:
                tint = np.stack([rgb[..., c, c] for c in range(3)], axis=-1)
            else:
                tint = self.gradient.weights_at(t[..., :colors])
        else:
            base = state.aux["score"]
            if colors == 3:
                tint = self.gradient.colors_at(t[..., 0])
            else:
                tint = self.gradient.weights_at(t)

        strength = self.tint_strength
        out = best.copy()
        out[..., :colors] = (1.0 - strength) * best[..., :colors] + strength * base * tint
        return out

    def time_positions(self, state: AccumulatorState) -> np.ndarray | None:
        return state.aux["position"].copy()
