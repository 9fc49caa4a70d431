"""Row band splitting and region views."""

import numpy as np
import pytest

from timestack.compositing.extrema import LightenAccumulator
from timestack.pipeline.regions import split_rows


class TestSplitRows:
    @pytest.mark.parametrize("height, parts", [(1, 1), (10, 3), (7, 7), (100, 8), (5, 12)])
    def test_bands_cover_every_row_once(self, height, parts):
        regions = split_rows(height, parts)

        rows = [row for region in regions for row in range(region.row_start, region.row_stop)]
        assert rows == list(range(height))
        assert all(region.row_count > 0 for region in regions)
        assert [region.index for region in regions] == list(range(len(regions)))

    def test_never_more_bands_than_rows(self):
        assert len(split_rows(3, 16)) == 3

    def test_remainders_are_spread(self):
        counts = [region.row_count for region in split_rows(10, 4)]

        assert max(counts) - min(counts) <= 1

    def test_rejects_empty_image(self):
        with pytest.raises(ValueError):
            split_rows(0, 2)


class TestRegionViews:
    def test_region_writes_reach_the_parent_buffer(self):
        accumulator = LightenAccumulator()
        state = accumulator.create_state(width=3, height=4, channel_count=1, sample_dtype=np.uint8)
        region = state.region(1, 3)

        accumulator.fold(region, np.full((2, 3, 1), 9, dtype=np.uint8), 0)

        assert region.rows == slice(1, 3)
        assert state.buffer[:, :, 0].tolist() == [[0, 0, 0], [9, 9, 9], [9, 9, 9], [0, 0, 0]]

    def test_region_outside_state_is_rejected(self):
        state = LightenAccumulator().create_state(width=1, height=2, channel_count=1, sample_dtype=np.uint8)

        with pytest.raises(ValueError):
            state.region(1, 5)
