"""Slice blending with positional masks."""

import numpy as np
import pytest

from timestack import composite
from timestack.compositing.slices import logistic_mask, stripe_mask
from timestack.config.schema import CompositeConfig, SliceConfig
from timestack.pipeline.frame import Frame

from conftest import make_frames


def _slices(arrays, shape, threads=1, normalize=True):
    config = CompositeConfig(
        mode="slices",
        thread_count=threads,
        slices=SliceConfig(shape=shape, normalize=normalize),
    )
    return composite(make_frames(arrays), config)


class TestMasks:
    def test_stripes_partition_the_axis(self):
        masks = np.stack([stripe_mask(10, 3, i) for i in range(3)])

        assert np.array_equal(masks.sum(axis=0), np.ones(10))

    def test_logistic_band_peaks_on_its_stripe(self):
        mask = logistic_mask(12, 3, 1, k=0.5)

        assert mask.argmax() == 6
        assert mask.max() == pytest.approx(0.5)
        assert mask[0] < mask[6]


class TestSliceMode:
    @pytest.mark.parametrize("normalize", [True, False])
    def test_vertical_flat_gives_each_frame_a_column_band(self, normalize):
        arrays = [np.full((1, 4, 1), 10, dtype=np.uint8), np.full((1, 4, 1), 200, dtype=np.uint8)]

        result = _slices(arrays, "vertical-flat", normalize=normalize)

        assert result.pixels[0, :, 0].tolist() == [10, 10, 200, 200]

    @pytest.mark.parametrize("threads", [1, 4])
    def test_horizontal_flat_respects_region_offsets(self, threads):
        arrays = [np.full((4, 1, 1), 10, dtype=np.uint8), np.full((4, 1, 1), 200, dtype=np.uint8)]

        result = _slices(arrays, "horizontal-flat", threads=threads)

        assert result.pixels[:, 0, 0].tolist() == [10, 10, 200, 200]

    def test_logistic_blend_is_bounded_and_ordered(self):
        arrays = [np.full((3, 30, 3), 20, dtype=np.uint8), np.full((3, 30, 3), 220, dtype=np.uint8)]

        result = _slices(arrays, "vertical-logistic")

        assert np.all(result.pixels >= 20)
        assert np.all(result.pixels <= 220)
        assert result.pixels[0, 0, 0] < result.pixels[0, -1, 0]

    @pytest.mark.parametrize("threads", [1, 2])
    def test_supplied_masks_replace_generated_ones(self, threads):
        left = np.array([[1.0, 1.0, 0.0, 0.0]] * 2)
        frames = [
            Frame(index=0, pixels=np.full((2, 4, 1), 10, dtype=np.uint8), mask=left),
            Frame(index=1, pixels=np.full((2, 4, 1), 200, dtype=np.uint8), mask=1.0 - left),
        ]
        config = CompositeConfig(
            mode="slices",
            thread_count=threads,
            slices=SliceConfig(shape="horizontal-flat"),
        )

        result = composite(frames, config)

        assert result.pixels[:, :, 0].tolist() == [[10, 10, 200, 200]] * 2

    def test_mask_images_are_normalized_weights(self):
        arrays = [np.full((1, 6, 1), value, dtype=np.uint8) for value in (0, 100, 200)]
        config = CompositeConfig(
            mode="slices",
            thread_count=1,
            slices=SliceConfig(shape="vertical-logistic", save_masks=True),
        )

        result = composite(make_frames(arrays), config)

        assert len(result.masks) == 3
        assert all(mask.shape == (1, 6, 1) for mask in result.masks)
        assert np.allclose(sum(result.masks), 1.0)

    def test_masks_are_only_kept_on_request(self, random_arrays):
        assert _slices(random_arrays, "vertical-flat").masks is None

    def test_region_split_matches_single_worker(self, random_arrays):
        single = _slices(random_arrays, "horizontal-logistic")
        split = _slices(random_arrays, "horizontal-logistic", threads=3)

        assert np.array_equal(single.pixels, split.pixels)
