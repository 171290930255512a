"""Model output tensors back to displayable RGBA pixels.

Two modes:

* explicit: the output was produced in a known profile's normalized space,
  so each channel is mapped back with ``v * std + mean``;
* auto: the scheme is unknown and is inferred from the observed value range.

Both clamp to [0, 1], scale to 0-255 with half-up rounding and write an
opaque alpha channel.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

import numpy as np

from tensorcanvas.errors import NonFiniteValueError
from tensorcanvas.ml.pixels import BYTES_PER_PIXEL, PixelGrid

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tensorcanvas.ml.profiles import NormalizationProfile
    from tensorcanvas.ml.tensor import Tensor

logger = logging.getLogger(__name__)

# Tolerance bands for range detection. They absorb small overshoot in model
# output and are fixed, not configurable.
UNIT_RANGE_LOW: float = -0.1
SYMMETRIC_RANGE_LOW: float = -1.1
RANGE_HIGH: float = 1.1


class RangeKind(StrEnum):
    UNIT = "unit"
    SYMMETRIC = "symmetric"
    UNKNOWN = "unknown"


def classify_range(lo: float, hi: float) -> RangeKind:
    """Guess which normalization produced values spanning ``[lo, hi]``.

    Bands are inclusive and checked narrowest first:

    ========================================  ==========
    ``lo >= -0.1 and hi <= 1.1``              UNIT
    ``lo >= -1.1 and hi <= 1.1``              SYMMETRIC
    anything else                             UNKNOWN
    ========================================  ==========

    Checking the symmetric band first would make the UNIT row unreachable,
    since it lies inside the symmetric band: a constant 0.5 output would come
    back as 191 instead of 128. Converters that use that order map output in
    [-0.1, 1.1] through ``(v + 1) / 2`` and disagree with this one there.
    """
    if lo >= UNIT_RANGE_LOW and hi <= RANGE_HIGH:
        return RangeKind.UNIT
    if lo >= SYMMETRIC_RANGE_LOW and hi <= RANGE_HIGH:
        return RangeKind.SYMMETRIC
    return RangeKind.UNKNOWN


def _to_grid(unit_planes: NDArray[np.float64], width: int, height: int) -> PixelGrid:
    """Clamp ``(3, width*height)`` planes in [0, 1] space and interleave as RGBA."""
    clamped = np.clip(unit_planes, 0.0, 1.0)
    # Half-up rounding: 127.5 -> 128.
    channel_bytes = np.floor(clamped * 255.0 + 0.5).astype(np.uint8)

    rgba = np.empty((width * height, BYTES_PER_PIXEL), dtype=np.uint8)
    rgba[:, :3] = channel_bytes.T
    rgba[:, 3] = 255
    return PixelGrid(width=width, height=height, pixels=rgba.tobytes())


def denormalize(tensor: Tensor, width: int, height: int, profile: NormalizationProfile) -> PixelGrid:
    """Reconstruct pixels from a tensor in ``profile``'s normalized space.

    ``profile`` describes the output space of the model, which is not
    necessarily the profile its input was normalized with.

    Raises:
        UnsupportedRankError: If the tensor is not ``[C,H,W]`` or ``[1,C,H,W]``.
        ShapeMismatchError: If its spatial size is not ``width`` x ``height``.
        NonFiniteValueError: If the planes hold NaN or infinity.
    """
    planes = tensor.planes(width, height).astype(np.float64)
    if not np.isfinite(planes).all():
        raise NonFiniteValueError("Output tensor holds NaN or infinite values")
    std = np.asarray(profile.std[:3], dtype=np.float64)[:, np.newaxis]
    mean = np.asarray(profile.mean[:3], dtype=np.float64)[:, np.newaxis]

    logger.debug("Denormalizing %s with profile '%s'", list(tensor.shape), profile.name)
    return _to_grid(planes * std + mean, width, height)


def denormalize_auto(tensor: Tensor, width: int, height: int) -> PixelGrid:
    """Reconstruct pixels, inferring the output range from the data.

    The minimum and maximum over the whole buffer pick the mapping:
    identity for [0, 1]-like output, ``(v + 1) / 2`` for [-1, 1]-like output,
    and a linear stretch of ``[min, max]`` onto [0, 1] otherwise. A constant
    tensor that falls outside both bands maps to black.

    Raises:
        UnsupportedRankError: If the tensor is not ``[C,H,W]`` or ``[1,C,H,W]``.
        ShapeMismatchError: If its spatial size is not ``width`` x ``height``.
        NonFiniteValueError: If the buffer holds NaN or infinity.
    """
    planes = tensor.planes(width, height).astype(np.float64)
    lo, hi = tensor.value_range()
    kind = classify_range(lo, hi)
    logger.info("Output range [%.4f, %.4f] classified as %s", lo, hi, kind)

    if kind is RangeKind.UNIT:
        unit = planes
    elif kind is RangeKind.SYMMETRIC:
        unit = (planes + 1.0) / 2.0
    elif hi == lo:
        unit = np.zeros_like(planes)
    else:
        unit = (planes - lo) / (hi - lo)
    return _to_grid(unit, width, height)


def denormalize_with(
    tensor: Tensor,
    width: int,
    height: int,
    profile: NormalizationProfile | None,
) -> PixelGrid:
    """Explicit mode when ``profile`` is given, auto mode when it is ``None``."""
    if profile is None:
        return denormalize_auto(tensor, width, height)
    return denormalize(tensor, width, height, profile)
