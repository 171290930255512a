"""Tests for explicit and auto denormalization."""

from __future__ import annotations

import numpy as np
import pytest

from tensorcanvas.errors import NonFiniteValueError, ShapeMismatchError, UnsupportedRankError
from tensorcanvas.ml.denormalizer import (
    RangeKind,
    classify_range,
    denormalize,
    denormalize_auto,
    denormalize_with,
)
from tensorcanvas.ml.normalizer import normalize
from tensorcanvas.ml.pixels import PixelGrid
from tensorcanvas.ml.profiles import PROFILE_REGISTRY, NormalizationProfile
from tensorcanvas.ml.tensor import Tensor

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sized(profile: NormalizationProfile, width: int, height: int) -> NormalizationProfile:
    return NormalizationProfile(name=profile.name, width=width, height=height, mean=profile.mean, std=profile.std)


def _rgb(grid: PixelGrid) -> np.ndarray:
    return grid.as_array()[:, :, :3]


def _planar(values: list[float], width: int, height: int) -> Tensor:
    """Same values in all three channel planes, shape [3, height, width]."""
    return Tensor((3, height, width), values * 3)


IDENTITY = NormalizationProfile(name="identity", width=2, height=2, mean=(0.0, 0.0, 0.0), std=(1.0, 1.0, 1.0))


# ---------------------------------------------------------------------------
# Explicit mode
# ---------------------------------------------------------------------------


class TestDenormalize:
    def test_white_round_trip_with_identity_profile(self) -> None:
        grid = PixelGrid(width=2, height=2, pixels=b"\xff" * 16)

        result = denormalize(normalize(grid, IDENTITY), 2, 2, IDENTITY)

        assert result.pixels == b"\xff" * 16

    @pytest.mark.parametrize("name", sorted(PROFILE_REGISTRY))
    def test_round_trip_within_one(self, name: str) -> None:
        profile = _sized(PROFILE_REGISTRY[name], 7, 5)
        rng = np.random.default_rng(11)
        array = rng.integers(0, 256, size=(5, 7, 4), dtype=np.uint8)
        array[:, :, 3] = 255
        grid = PixelGrid.from_array(array)

        result = denormalize(normalize(grid, profile), 7, 5, profile)

        diff = np.abs(_rgb(result).astype(int) - array[:, :, :3].astype(int))
        assert diff.max() <= 1
        assert np.all(result.as_array()[:, :, 3] == 255)

    def test_values_are_clamped(self) -> None:
        tensor = _planar([-0.5, 2.0], 2, 1)

        result = denormalize(tensor, 2, 1, IDENTITY)

        np.testing.assert_array_equal(_rgb(result).reshape(2, 3), [[0, 0, 0], [255, 255, 255]])

    def test_half_rounds_up(self) -> None:
        result = denormalize(_planar([0.5], 1, 1), 1, 1, IDENTITY)
        assert result.pixels == bytes([128, 128, 128, 255])

    def test_channels_use_their_own_constants(self) -> None:
        profile = NormalizationProfile(name="p", width=1, height=1, mean=(0.0, 0.5, 1.0), std=(1.0, 0.5, 0.25))
        tensor = Tensor((1, 3, 1, 1), [0.2, 0.0, -4.0])

        result = denormalize(tensor, 1, 1, profile)

        # r = 0.2, g = 0.5, b = 0.0
        assert result.pixels == bytes([51, 128, 0, 255])

    def test_rank4_batch_of_one_is_accepted(self) -> None:
        tensor = Tensor((1, 3, 1, 2), [0.0, 1.0] * 3)
        result = denormalize(tensor, 2, 1, IDENTITY)
        assert result.pixels == bytes([0, 0, 0, 255, 255, 255, 255, 255])

    @pytest.mark.parametrize("shape", [(12,), (6, 2), (1, 1, 3, 2, 2)])
    def test_unsupported_rank_raises(self, shape: tuple[int, ...]) -> None:
        with pytest.raises(UnsupportedRankError):
            denormalize(Tensor(shape, np.zeros(12)), 2, 2, IDENTITY)

    def test_batch_of_two_raises(self) -> None:
        with pytest.raises(UnsupportedRankError):
            denormalize(Tensor((2, 3, 2, 2), np.zeros(24)), 2, 2, IDENTITY)

    def test_target_size_mismatch_raises(self) -> None:
        with pytest.raises(ShapeMismatchError):
            denormalize(Tensor((3, 2, 2), np.zeros(12)), 3, 3, IDENTITY)

    def test_nan_output_raises(self) -> None:
        tensor = _planar([float("nan"), 0.5], 2, 1)
        with pytest.raises(NonFiniteValueError):
            denormalize(tensor, 2, 1, IDENTITY)


# ---------------------------------------------------------------------------
# Range classification
# ---------------------------------------------------------------------------


class TestClassifyRange:
    @pytest.mark.parametrize(
        ("lo", "hi", "expected"),
        [
            (0.0, 1.0, RangeKind.UNIT),
            (0.5, 0.5, RangeKind.UNIT),
            (-0.1, 1.1, RangeKind.UNIT),
            (-1.0, 1.0, RangeKind.SYMMETRIC),
            (-0.5, 0.2, RangeKind.SYMMETRIC),
            (-1.1, 1.1, RangeKind.SYMMETRIC),
            (-1.2, 1.0, RangeKind.UNKNOWN),
            (0.0, 1.2, RangeKind.UNKNOWN),
            (0.0, 255.0, RangeKind.UNKNOWN),
            (-3.0, -2.0, RangeKind.UNKNOWN),
        ],
    )
    def test_bands(self, lo: float, hi: float, expected: RangeKind) -> None:
        assert classify_range(lo, hi) is expected


# ---------------------------------------------------------------------------
# Auto mode
# ---------------------------------------------------------------------------


class TestDenormalizeAuto:
    def test_constant_half_is_unit_range(self) -> None:
        tensor = Tensor((3, 2, 2), np.full(12, 0.5))

        result = denormalize_auto(tensor, 2, 2)

        assert (result.width, result.height) == (2, 2)
        assert result.pixels == bytes([128, 128, 128, 255]) * 4

    def test_unit_range_is_identity(self) -> None:
        tensor = _planar([0.0, 0.2, 1.0, 1.05], 2, 2)

        result = denormalize_auto(tensor, 2, 2)

        np.testing.assert_array_equal(_rgb(result)[:, :, 0].ravel(), [0, 51, 255, 255])

    def test_symmetric_range(self) -> None:
        tensor = _planar([-1.0, 0.0, 1.0, -0.5], 2, 2)

        result = denormalize_auto(tensor, 2, 2)

        np.testing.assert_array_equal(_rgb(result)[:, :, 0].ravel(), [0, 128, 255, 64])

    def test_unknown_range_is_stretched(self) -> None:
        tensor = Tensor((1, 3, 1, 3), [-5.0, 0.0, 5.0] * 3)

        result = denormalize_auto(tensor, 3, 1)

        red = _rgb(result)[:, :, 0].ravel()
        np.testing.assert_array_equal(red, [0, 128, 255])

    def test_unknown_range_uses_whole_buffer_extrema(self) -> None:
        # Only the blue plane reaches the extremes.
        tensor = Tensor((3, 1, 2), [10.0, 20.0, 10.0, 20.0, 0.0, 40.0])

        result = denormalize_auto(tensor, 2, 1)

        np.testing.assert_array_equal(
            _rgb(result).reshape(2, 3),
            [[64, 64, 0], [128, 128, 255]],
        )

    def test_degenerate_unknown_range_is_black(self) -> None:
        tensor = Tensor((3, 2, 2), np.full(12, 3.0))

        result = denormalize_auto(tensor, 2, 2)

        assert result.pixels == bytes([0, 0, 0, 255]) * 4

    def test_alpha_is_opaque(self) -> None:
        rng = np.random.default_rng(5)
        tensor = Tensor((1, 3, 4, 4), rng.normal(scale=10.0, size=48))

        result = denormalize_auto(tensor, 4, 4)

        assert np.all(result.as_array()[:, :, 3] == 255)

    def test_nan_output_raises(self) -> None:
        # A NaN must not hide the real extremes and slip through as UNIT.
        tensor = _planar([float("nan"), 100.0, 0.5, 0.25], 2, 2)
        with pytest.raises(NonFiniteValueError):
            denormalize_auto(tensor, 2, 2)

    @pytest.mark.parametrize("shape", [(12,), (3, 4), (1, 1, 3, 2, 2)])
    def test_unsupported_rank_raises(self, shape: tuple[int, ...]) -> None:
        with pytest.raises(UnsupportedRankError):
            denormalize_auto(Tensor(shape, np.zeros(12)), 2, 2)


class TestDenormalizeWith:
    def test_none_profile_uses_auto(self) -> None:
        tensor = _planar([-1.0], 1, 1)
        assert denormalize_with(tensor, 1, 1, None).pixels == bytes([0, 0, 0, 255])

    def test_profile_uses_explicit(self) -> None:
        tensor = _planar([-1.0], 1, 1)
        assert denormalize_with(tensor, 1, 1, IDENTITY).pixels == bytes([0, 0, 0, 255])
        simple = NormalizationProfile(name="s", width=1, height=1, mean=(0.5, 0.5, 0.5), std=(0.5, 0.5, 0.5))
        assert denormalize_with(_planar([0.0], 1, 1), 1, 1, simple).pixels == bytes([128, 128, 128, 255])
