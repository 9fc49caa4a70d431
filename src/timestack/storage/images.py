"""Decode image files into frames and encode composites back to disk."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageOps

from timestack.compositing.channels import convert_channels, rescale_samples
from timestack.errors import DimensionMismatchError
from timestack.pipeline.frame import Frame, has_alpha, sample_max, to_sample_dtype
from timestack.storage.atomic import atomic_target


_NATIVE_MODES = {"L", "LA", "RGB", "RGBA", "I;16"}
_ALPHA_LESS_FORMATS = {".jpg", ".jpeg", ".bmp"}
_MODES_BY_CHANNELS = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}
MASK_STEM_SUFFIX = "_mask"


def _decode(image: Image.Image) -> np.ndarray:
    image = ImageOps.exif_transpose(image)
    if image.mode not in _NATIVE_MODES:
        wants_alpha = image.mode.endswith("A") or "transparency" in image.info
        image = image.convert("RGBA" if wants_alpha else "RGB")
    return np.array(image)


def load_mask(path: Path) -> np.ndarray:
    """Decode a mask image into (H, W, 1) weights from its first channel."""

    with Image.open(path) as image:
        samples = _decode(image)
    if samples.ndim == 2:
        samples = samples[:, :, np.newaxis]
    return samples[:, :, :1].astype(np.float64) / sample_max(samples.dtype)


def load_frame(path: Path, index: int, mask_path: Path | None = None) -> Frame:
    """Decode one image file, and optionally its mask, into a Frame."""

    with Image.open(path) as image:
        pixels = _decode(image)
    if mask_path is None:
        return Frame(index=index, pixels=pixels)

    mask = load_mask(mask_path)
    height, width = pixels.shape[:2]
    if mask.shape[:2] != (height, width):
        raise DimensionMismatchError(
            index,
            (width, height, 1),
            (mask.shape[1], mask.shape[0], 1),
            detail=f"{path.name} and its mask {mask_path.name} have different dimensions",
        )
    return Frame(index=index, pixels=pixels, mask=mask)


def mask_path_for(image_path: Path) -> Path:
    """`<stem>_mask.png` beside the input image."""

    return image_path.with_name(f"{image_path.stem}{MASK_STEM_SUFFIX}.png")


def save_mask(mask: np.ndarray, path: Path) -> None:
    """Write (H, W, 1) weights in [0, 1] as an 8-bit grey image, atomically."""

    samples = to_sample_dtype(np.asarray(mask, dtype=np.float64) * 255.0, np.dtype(np.uint8))
    image = Image.fromarray(np.ascontiguousarray(samples[:, :, 0]))
    with atomic_target(path) as tmp_path:
        image.save(tmp_path)


def encode_image(pixels: np.ndarray, suffix: str = ".png") -> Image.Image:
    """Build a Pillow image for a (H, W, C) buffer, narrowing to what formats accept."""

    channels = pixels.shape[2]
    if suffix.lower() in _ALPHA_LESS_FORMATS and has_alpha(channels):
        channels -= 1
        pixels = convert_channels(pixels, channels)

    if pixels.dtype == np.uint16 and channels == 1 and suffix.lower() in {".png", ".tif", ".tiff"}:
        return Image.fromarray(np.ascontiguousarray(pixels[:, :, 0]))

    pixels = rescale_samples(pixels, np.dtype(np.uint8))
    if channels == 1:
        return Image.fromarray(np.ascontiguousarray(pixels[:, :, 0]))
    image = Image.fromarray(np.ascontiguousarray(pixels))
    expected = _MODES_BY_CHANNELS[channels]
    if image.mode != expected:
        raise ValueError(f"Cannot encode {channels}-channel buffer as {expected}")
    return image


def save_image(pixels: np.ndarray, path: Path) -> None:
    """Write a composite buffer atomically; the format follows the suffix."""

    image = encode_image(pixels, path.suffix)
    with atomic_target(path) as tmp_path:
        image.save(tmp_path)
