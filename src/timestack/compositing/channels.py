"""Channel layout helpers shared by the normalizer and the accumulators."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from timestack.pipeline.frame import color_channels, has_alpha, sample_max


# ITU-R 601-2 luma transform, the same weights Pillow uses for convert("L").
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def luminance(pixels: np.ndarray, weights: Sequence[float] | None = None) -> np.ndarray:
    """Return a (H, W, 1) float64 score of the colour channels of `pixels`."""

    colors = color_channels(pixels.shape[-1])
    data = pixels[..., :colors].astype(np.float64, copy=False)
    if weights is None:
        if colors == 1:
            return data.copy()
        weights = LUMA_WEIGHTS
    if len(weights) != colors:
        raise ValueError(f"Expected {colors} channel weights, got {len(weights)}")
    kernel = np.asarray(weights, dtype=np.float64)
    return np.tensordot(data, kernel, axes=([-1], [0]))[..., np.newaxis]


def rescale_samples(pixels: np.ndarray, dtype: np.dtype) -> np.ndarray:
    """Convert samples to another dtype, rescaling between sample ranges."""

    dtype = np.dtype(dtype)
    if pixels.dtype == dtype:
        return pixels
    source_max = sample_max(pixels.dtype)
    target_max = sample_max(dtype)
    values = pixels.astype(np.float64) * (target_max / source_max)
    if np.issubdtype(dtype, np.integer):
        values = np.floor(values + 0.5)
    return np.clip(values, 0.0, target_max).astype(dtype)


def convert_channels(pixels: np.ndarray, channel_count: int) -> np.ndarray:
    """Reconcile a (H, W, C) buffer to another channel layout.

    Alpha is dropped or synthesized fully opaque. Grey is replicated to RGB and
    RGB is reduced to grey by luminance.
    """

    current = pixels.shape[-1]
    if current == channel_count:
        return pixels

    source_colors = color_channels(current)
    target_colors = color_channels(channel_count)
    colors = pixels[..., :source_colors]

    if source_colors != target_colors:
        if target_colors == 1:
            luma = luminance(colors)
            if np.issubdtype(pixels.dtype, np.integer):
                luma = np.floor(luma + 0.5)
            colors = luma.astype(pixels.dtype)
        else:
            colors = np.repeat(colors, target_colors, axis=-1)

    if not has_alpha(channel_count):
        return np.ascontiguousarray(colors)

    if has_alpha(current):
        alpha = pixels[..., -1:]
    else:
        alpha = np.full(colors.shape[:-1] + (1,), sample_max(pixels.dtype), dtype=pixels.dtype)
    return np.concatenate([colors, alpha], axis=-1)
