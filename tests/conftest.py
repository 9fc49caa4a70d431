"""
Test Configuration
==================

Pytest fixtures shared by the timestack test suite.
"""

import numpy as np
import pytest

from timestack.pipeline.frame import Frame


def make_frames(arrays, dtype=np.uint8):
    """Wrap raw arrays as frames indexed 0..N-1 in the order given."""

    return [Frame(index=i, pixels=np.asarray(a, dtype=dtype)) for i, a in enumerate(arrays)]


@pytest.fixture
def scenario_arrays():
    """3 frames of 2x1 single-channel pixels."""

    return [
        np.array([[[10], [200]]], dtype=np.uint8),
        np.array([[[50], [50]]], dtype=np.uint8),
        np.array([[[0], [255]]], dtype=np.uint8),
    ]


@pytest.fixture
def random_arrays():
    """Six 5x7 RGB frames with a fixed seed."""

    rng = np.random.default_rng(1234)
    return [rng.integers(0, 256, size=(5, 7, 3), dtype=np.uint8) for _ in range(6)]
