"""Canvas pixels to a planar (channel-first) normalized tensor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from tensorcanvas.errors import ShapeMismatchError
from tensorcanvas.ml.tensor import Tensor

if TYPE_CHECKING:
    from tensorcanvas.ml.pixels import PixelGrid
    from tensorcanvas.ml.profiles import NormalizationProfile

logger = logging.getLogger(__name__)


def normalize(grid: PixelGrid, profile: NormalizationProfile) -> Tensor:
    """Normalize an RGBA canvas into a ``[1, 3, height, width]`` tensor.

    Each channel value is scaled to [0, 1] and standardized with the profile's
    mean and std. Channels are laid out one after another (R plane, then G,
    then B), each plane holding ``width*height`` values in row-major order.
    Alpha is ignored.

    Args:
        grid: Canvas pixels, already resized to the profile's size.
        profile: Normalization constants and expected canvas size.

    Raises:
        ShapeMismatchError: If the grid size differs from the profile size.
    """
    if (grid.width, grid.height) != (profile.width, profile.height):
        raise ShapeMismatchError(
            f"Canvas is {grid.width}x{grid.height}, profile '{profile.name}' "
            f"expects {profile.width}x{profile.height}"
        )

    rgb = grid.as_array()[:, :, : profile.channels].astype(np.float32) / 255.0
    mean = np.asarray(profile.mean, dtype=np.float32)
    std = np.asarray(profile.std, dtype=np.float32)

    # HWC -> CHW
    planar = np.transpose((rgb - mean) / std, (2, 0, 1))
    data = np.ascontiguousarray(planar, dtype=np.float32)

    tensor = Tensor((1, profile.channels, profile.height, profile.width), data)
    if logger.isEnabledFor(logging.DEBUG):
        lo, hi = tensor.value_range()
        logger.debug("Normalized with '%s': shape=%s range=[%.4f, %.4f]", profile.name, list(tensor.shape), lo, hi)
    return tensor
