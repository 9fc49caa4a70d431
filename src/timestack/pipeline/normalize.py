"""Make a frame sequence share one width, height, channel layout and dtype."""

from __future__ import annotations

from typing import Iterable, Iterator

import numpy as np
from PIL import Image

from timestack.compositing.channels import convert_channels, rescale_samples
from timestack.errors import DimensionMismatchError, FrameOrderError, UnknownModeError
from timestack.pipeline.frame import Frame, sample_max


RESIZE_POLICIES = ("scale-to-first", "reject")

_RESAMPLE_FILTERS = {
    "bilinear": Image.Resampling.BILINEAR,
    "area": Image.Resampling.BOX,
}


def _resize_channels(pixels: np.ndarray, width: int, height: int, resample: Image.Resampling) -> np.ndarray:
    """Resample every channel as a 32-bit float image."""

    channels = []
    for c in range(pixels.shape[2]):
        plane = Image.fromarray(np.ascontiguousarray(pixels[:, :, c], dtype=np.float32))
        resized = plane.resize((width, height), resample)
        channels.append(np.asarray(resized, dtype=np.float64))
    values = np.stack(channels, axis=-1)
    limit = sample_max(pixels.dtype)
    if np.issubdtype(pixels.dtype, np.integer):
        values = np.floor(values + 0.5)
    return np.clip(values, 0.0, limit).astype(pixels.dtype)


class Normalizer:
    """Reconcile frames against the first frame of a run."""

    def __init__(self, reference: Frame, policy: str = "scale-to-first", resample: str = "bilinear") -> None:
        if policy not in RESIZE_POLICIES:
            raise UnknownModeError("resize policy", policy, RESIZE_POLICIES)
        if resample not in _RESAMPLE_FILTERS:
            raise UnknownModeError("resample filter", resample, sorted(_RESAMPLE_FILTERS))
        self.reference = reference
        self.policy = policy
        self.resample = resample

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.reference.shape

    @property
    def dtype(self) -> np.dtype:
        return self.reference.dtype

    def normalize(self, frame: Frame) -> Frame:
        """Return `frame` in the reference layout; the input is never modified."""

        if frame.shape == self.shape and frame.dtype == self.dtype:
            return frame
        if self.policy == "reject" and frame.shape != self.shape:
            raise DimensionMismatchError(frame.index, self.shape, frame.shape)

        width, height, channels = self.shape
        pixels = rescale_samples(frame.pixels, self.dtype)
        pixels = convert_channels(pixels, channels)
        mask = frame.mask
        if (frame.width, frame.height) != (width, height):
            resample = _RESAMPLE_FILTERS[self.resample]
            pixels = _resize_channels(pixels, width, height, resample)
            if mask is not None:
                mask = _resize_channels(mask, width, height, resample)
        return Frame(index=frame.index, pixels=pixels, mask=mask)


def ordered(frames: Iterable[Frame]) -> Iterator[Frame]:
    """Yield frames, failing once an index does not increase."""

    previous: int | None = None
    for frame in frames:
        if previous is not None and frame.index <= previous:
            raise FrameOrderError(previous, frame.index)
        previous = frame.index
        yield frame


def normalize_frames(
    frames: Iterable[Frame],
    policy: str = "scale-to-first",
    resample: str = "bilinear",
) -> Iterator[Frame]:
    """Lazily normalize a whole sequence against its first frame."""

    normalizer: Normalizer | None = None
    for frame in ordered(frames):
        if normalizer is None:
            normalizer = Normalizer(frame, policy=policy, resample=resample)
            yield frame
            continue
        yield normalizer.normalize(frame)
