"""Tests for planar normalization."""

from __future__ import annotations

import numpy as np
import pytest

from tensorcanvas.errors import ShapeMismatchError
from tensorcanvas.ml.normalizer import normalize
from tensorcanvas.ml.pixels import PixelGrid
from tensorcanvas.ml.profiles import NormalizationProfile, get_profile

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _profile(
    width: int,
    height: int,
    mean: tuple[float, ...] = (0.0, 0.0, 0.0),
    std: tuple[float, ...] = (1.0, 1.0, 1.0),
) -> NormalizationProfile:
    return NormalizationProfile(name="test", width=width, height=height, mean=mean, std=std)


def _white_grid(width: int, height: int) -> PixelGrid:
    return PixelGrid(width=width, height=height, pixels=b"\xff" * (width * height * 4))


class TestNormalize:
    def test_white_image_with_identity_profile_is_all_ones(self) -> None:
        tensor = normalize(_white_grid(2, 2), _profile(2, 2))

        assert tensor.shape == (1, 3, 2, 2)
        assert tensor.data.dtype == np.float32
        np.testing.assert_array_equal(tensor.data, np.ones(12, dtype=np.float32))

    def test_planar_channel_layout(self) -> None:
        # Two pixels: pure red, then pure green.
        grid = PixelGrid(width=2, height=1, pixels=bytes([255, 0, 0, 255, 0, 255, 0, 255]))

        tensor = normalize(grid, _profile(2, 1))

        np.testing.assert_array_equal(tensor.data, [1.0, 0.0, 0.0, 1.0, 0.0, 0.0])

    def test_channel_blocks_are_contiguous(self) -> None:
        width, height = 5, 3
        array = np.zeros((height, width, 4), dtype=np.uint8)
        array[:, :, 0] = 255  # red everywhere
        array[:, :, 2] = 51  # blue = 0.2
        grid = PixelGrid.from_array(array)
        plane = width * height

        tensor = normalize(grid, _profile(width, height))

        assert tensor.size == 3 * plane
        np.testing.assert_allclose(tensor.data[:plane], 1.0)
        np.testing.assert_allclose(tensor.data[plane : 2 * plane], 0.0)
        np.testing.assert_allclose(tensor.data[2 * plane :], 0.2, rtol=1e-6)

    def test_row_major_pixel_order(self) -> None:
        array = np.zeros((2, 2, 4), dtype=np.uint8)
        array[0, 1, 0] = 255  # pixel index 1 (row 0, column 1)
        array[1, 0, 0] = 51  # pixel index 2 (row 1, column 0)

        tensor = normalize(PixelGrid.from_array(array), _profile(2, 2))

        np.testing.assert_allclose(tensor.data[:4], [0.0, 1.0, 0.2, 0.0], rtol=1e-6)

    def test_mean_and_std_are_applied_per_channel(self) -> None:
        grid = PixelGrid(width=1, height=1, pixels=bytes([255, 255, 255, 255]))
        profile = get_profile("default")
        profile = _profile(1, 1, mean=profile.mean, std=profile.std)

        tensor = normalize(grid, profile)

        expected = [(1.0 - 0.485) / 0.229, (1.0 - 0.456) / 0.224, (1.0 - 0.406) / 0.225]
        np.testing.assert_allclose(tensor.data, expected, rtol=1e-6)

    def test_symmetric_profile_maps_to_minus_one_one(self) -> None:
        grid = PixelGrid(width=2, height=1, pixels=bytes([0, 0, 0, 255, 255, 255, 255, 255]))

        tensor = normalize(grid, _profile(2, 1, mean=(0.5, 0.5, 0.5), std=(0.5, 0.5, 0.5)))

        np.testing.assert_allclose(tensor.data, [-1.0, 1.0] * 3)

    def test_alpha_is_ignored(self) -> None:
        opaque = PixelGrid(width=1, height=1, pixels=bytes([10, 20, 30, 255]))
        clear = PixelGrid(width=1, height=1, pixels=bytes([10, 20, 30, 0]))

        assert normalize(opaque, _profile(1, 1)) == normalize(clear, _profile(1, 1))

    def test_size_mismatch_raises(self) -> None:
        with pytest.raises(ShapeMismatchError, match="expects 3x3"):
            normalize(_white_grid(2, 2), _profile(3, 3))
