"""RGBA pixel grid value type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from tensorcanvas.errors import InvalidDimensionsError, ShapeMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray

BYTES_PER_PIXEL = 4


@dataclass(frozen=True)
class PixelGrid:
    """Interleaved RGBA bytes, one byte per channel, no row padding."""

    width: int
    height: int
    pixels: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensionsError(f"Pixel grid size must be positive, got {self.width}x{self.height}")
        expected = self.width * self.height * BYTES_PER_PIXEL
        if len(self.pixels) != expected:
            raise ShapeMismatchError(
                f"Pixel buffer holds {len(self.pixels)} bytes, expected {expected} for {self.width}x{self.height}"
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def as_array(self) -> NDArray[np.uint8]:
        """Return a read-only HxWx4 uint8 view over the pixel bytes."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, BYTES_PER_PIXEL)

    @classmethod
    def from_array(cls, array: NDArray[np.uint8]) -> PixelGrid:
        """Build a grid from an HxWx4 or HxWx3 uint8 array.

        Three-channel input gets an opaque alpha channel.
        """
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ShapeMismatchError(f"Expected an HxWx3 or HxWx4 array, got shape {array.shape}")
        height, width = array.shape[:2]
        if array.shape[2] == 3:
            alpha = np.full((height, width, 1), 255, dtype=np.uint8)
            array = np.concatenate([array.astype(np.uint8, copy=False), alpha], axis=2)
        return cls(width=width, height=height, pixels=np.ascontiguousarray(array, dtype=np.uint8).tobytes())
