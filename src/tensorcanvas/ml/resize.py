"""Cover-fit resize and center crop onto a fixed-size canvas.

The source is scaled by the larger of the two axis ratios so that it covers
the whole target canvas, centered, and whatever overflows the canvas is
cropped away. The canvas starts out opaque white; translucent source pixels
are composited over it, so every output pixel has alpha 255.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from tensorcanvas.errors import InvalidDimensionsError, SurfaceError
from tensorcanvas.ml.pixels import PixelGrid

logger = logging.getLogger(__name__)

BACKGROUND = (255, 255, 255, 255)


@dataclass(frozen=True)
class CropGeometry:
    """Placement of the scaled source relative to the target canvas."""

    scale: float
    scaled_width: float
    scaled_height: float
    offset_x: float
    offset_y: float

    def source_box(self, width: int, height: int, src_width: int, src_height: int) -> tuple[float, float, float, float]:
        """Region of the source image that lands on a ``width`` x ``height`` canvas.

        Clamped to the source bounds so float error at the edges cannot push
        the box outside the image.
        """
        left = -self.offset_x / self.scale
        top = -self.offset_y / self.scale
        right = (width - self.offset_x) / self.scale
        bottom = (height - self.offset_y) / self.scale
        return (
            max(0.0, left),
            max(0.0, top),
            min(float(src_width), right),
            min(float(src_height), bottom),
        )


def compute_geometry(src_width: int, src_height: int, width: int, height: int) -> CropGeometry:
    """Compute the cover-fit scale and centering offsets.

    Offsets are negative on any axis where the scaled source overflows the
    canvas; that overflow is the implicit crop.

    Raises:
        InvalidDimensionsError: If any dimension is zero or negative.
    """
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(f"Target size must be positive, got {width}x{height}")
    if src_width <= 0 or src_height <= 0:
        raise InvalidDimensionsError(f"Source size must be positive, got {src_width}x{src_height}")

    scale = max(width / src_width, height / src_height)
    scaled_width = src_width * scale
    scaled_height = src_height * scale
    return CropGeometry(
        scale=scale,
        scaled_width=scaled_width,
        scaled_height=scaled_height,
        offset_x=(width - scaled_width) / 2,
        offset_y=(height - scaled_height) / 2,
    )


def resize_and_crop(
    grid: PixelGrid,
    width: int,
    height: int,
    resample: Image.Resampling = Image.Resampling.BILINEAR,
) -> PixelGrid:
    """Scale ``grid`` to cover a ``width`` x ``height`` canvas and center-crop it.

    Args:
        grid: Source pixels.
        width: Target canvas width.
        height: Target canvas height.
        resample: Pillow resampling filter used for scaling.

    Returns:
        A grid of exactly ``width`` x ``height`` with alpha 255 everywhere.

    Raises:
        InvalidDimensionsError: If the target size is not positive.
        SurfaceError: If Pillow cannot allocate or draw the canvas.
    """
    geometry = compute_geometry(grid.width, grid.height, width, height)
    box = geometry.source_box(width, height, grid.width, grid.height)

    try:
        source = Image.frombytes("RGBA", (grid.width, grid.height), grid.pixels)
        canvas = Image.new("RGBA", (width, height), BACKGROUND)
        visible = source.resize((width, height), resample=resample, box=box)
        canvas.alpha_composite(visible)
    except (ValueError, MemoryError, OSError) as exc:
        raise SurfaceError(f"Could not draw {width}x{height} canvas: {exc}") from exc

    logger.debug(
        "Resized %dx%d -> %dx%d (scale=%.4f, offset=(%.2f, %.2f))",
        grid.width,
        grid.height,
        width,
        height,
        geometry.scale,
        geometry.offset_x,
        geometry.offset_y,
    )
    return PixelGrid(width=width, height=height, pixels=canvas.tobytes())
