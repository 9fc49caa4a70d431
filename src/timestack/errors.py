"""Error taxonomy for the compositing engine."""

from __future__ import annotations

from typing import Sequence


class CompositeError(Exception):
    """Base class for every error raised by a composite run."""


class EmptyInputError(CompositeError, ValueError):
    """No frames were supplied."""

    def __init__(self) -> None:
        super().__init__("No frames to composite; at least one frame is required.")


class DimensionMismatchError(CompositeError, ValueError):
    """A frame's shape disagrees with the first frame and resizing is disabled."""

    def __init__(
        self,
        index: int,
        expected: tuple[int, int, int],
        received: tuple[int, int, int],
        detail: str | None = None,
    ) -> None:
        self.index = index
        self.expected = expected
        self.received = received
        self.detail = detail
        message = f"Frame {index} has shape {_fmt_shape(received)}, expected {_fmt_shape(expected)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class FrameOrderError(CompositeError, ValueError):
    """Frame indices are not strictly increasing."""

    def __init__(self, previous: int, current: int) -> None:
        self.previous = previous
        self.current = current
        super().__init__(
            f"Frame index {current} follows {previous}; indices must be strictly increasing"
        )


class WorkerFailureError(CompositeError, RuntimeError):
    """An unexpected fault inside a parallel worker."""

    def __init__(self, unit: str, cause: BaseException) -> None:
        self.unit = unit
        super().__init__(f"Worker for {unit} failed: {type(cause).__name__}: {cause}")


class ConfigError(CompositeError, ValueError):
    """Invalid composite configuration."""


class UnknownModeError(ConfigError):
    """An enumerated configuration value is not recognized."""

    def __init__(self, option: str, value: object, choices: Sequence[str]) -> None:
        self.option = option
        self.value = value
        self.choices = tuple(choices)
        joined = ", ".join(self.choices)
        super().__init__(f"Unknown {option} {value!r}; expected one of: {joined}")


class InvalidConfigError(ConfigError):
    """A configuration value is out of range or malformed."""


def _fmt_shape(shape: tuple[int, int, int]) -> str:
    width, height, channels = shape
    return f"{width}x{height}x{channels}"
