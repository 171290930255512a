"""Image decoding: encoded bytes to an RGBA pixel grid.

Handles format detection, size validation, EXIF orientation and color space
conversion. Decoding is the only awaitable step of preprocessing; the async
variant runs Pillow in the event loop's default executor so the loop is never
blocked on a large image.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import TYPE_CHECKING

from PIL import Image, ImageOps, UnidentifiedImageError

from tensorcanvas.errors import DecodeError
from tensorcanvas.ml.pixels import PixelGrid

if TYPE_CHECKING:
    from tensorcanvas.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_PIXELS: int = 16_777_216
DEFAULT_MAX_FILE_SIZE: int = 209_715_200


class ImageDecoder:
    """Decodes raster images (any format Pillow can open) into PixelGrids."""

    def __init__(
        self,
        max_image_pixels: int = DEFAULT_MAX_IMAGE_PIXELS,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        self._max_image_pixels = max_image_pixels
        self._max_file_size = max_file_size

    @classmethod
    def from_settings(cls, settings: Settings) -> ImageDecoder:
        return cls(
            max_image_pixels=settings.max_image_pixels,
            max_file_size=settings.max_file_size,
        )

    def decode(self, image_bytes: bytes) -> PixelGrid:
        """Decode raw image bytes into an RGBA grid.

        Raises:
            DecodeError: If the bytes are empty, too large, or not a supported image.
        """
        if not image_bytes:
            raise DecodeError("Image data is empty")
        if len(image_bytes) > self._max_file_size:
            raise DecodeError(f"Image data is {len(image_bytes)} bytes, limit is {self._max_file_size}")

        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                width, height = img.size
                if width * height > self._max_image_pixels:
                    raise DecodeError(
                        f"Image is {width}x{height} pixels, limit is {self._max_image_pixels} pixels"
                    )
                img.load()
                oriented = ImageOps.exif_transpose(img)
                rgba = oriented.convert("RGBA")
                grid = PixelGrid(width=rgba.width, height=rgba.height, pixels=rgba.tobytes())
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
            raise DecodeError(f"Invalid or unsupported image: {exc}") from exc

        logger.debug("Decoded %dx%d image (%d bytes)", grid.width, grid.height, len(image_bytes))
        return grid

    async def decode_async(self, image_bytes: bytes) -> PixelGrid:
        """Decode in the default executor; resolves to a grid or raises DecodeError."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.decode, image_bytes)


def decode_image(image_bytes: bytes) -> PixelGrid:
    """Decode with default limits."""
    return ImageDecoder().decode(image_bytes)


async def decode_image_async(image_bytes: bytes) -> PixelGrid:
    """Awaitable decode with default limits."""
    return await ImageDecoder().decode_async(image_bytes)
