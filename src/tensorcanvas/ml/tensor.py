"""Shape-checked float32 tensors for the inference boundary.

A ``Tensor`` pairs a flat float32 buffer with its shape. It is what the
normalizer produces, what is fed to (and read back from) the inference
engine, and what the denormalizer consumes. Views are handed out instead of
copies wherever numpy allows it.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from tensorcanvas.errors import NonFiniteValueError, ShapeMismatchError, UnsupportedRankError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from numpy.typing import ArrayLike, NDArray

PLANAR_RANKS = (3, 4)
RGB_CHANNELS = 3

# Elements per step of the range scan. Bounds the temporary memory used by the
# scan regardless of tensor size.
SCAN_CHUNK_SIZE = 65_536


def scan_range(data: NDArray[np.float32], chunk_size: int = SCAN_CHUNK_SIZE) -> tuple[float, float]:
    """Return ``(min, max)`` of a buffer in a single linear pass.

    Walks the flattened buffer in fixed-size chunks and folds each chunk into
    running extrema, so memory stays bounded however large the tensor is.

    Raises:
        ShapeMismatchError: If the buffer is empty.
        NonFiniteValueError: If the buffer holds NaN or infinity.
    """
    flat = np.ravel(data)
    if flat.size == 0:
        raise ShapeMismatchError("Cannot compute the value range of an empty tensor")

    lo = math.inf
    hi = -math.inf
    for start in range(0, flat.size, chunk_size):
        chunk = flat[start : start + chunk_size]
        if not np.isfinite(chunk).all():
            raise NonFiniteValueError(f"Tensor holds NaN or infinite values in the chunk starting at element {start}")
        lo = min(lo, float(chunk.min()))
        hi = max(hi, float(chunk.max()))
    return lo, hi


class Tensor:
    """A float32 buffer with an explicit shape."""

    __slots__ = ("_data", "_shape")

    def __init__(self, shape: Iterable[int], data: ArrayLike) -> None:
        shape = tuple(int(dim) for dim in shape)
        if any(dim < 0 for dim in shape):
            raise ShapeMismatchError(f"Tensor shape has a negative dimension: {list(shape)}")
        buffer = np.ravel(np.asarray(data, dtype=np.float32))
        expected = math.prod(shape)
        if buffer.size != expected:
            raise ShapeMismatchError(
                f"Tensor shape {list(shape)} needs {expected} elements, buffer has {buffer.size}"
            )
        self._shape = shape
        self._data = buffer

    @classmethod
    def from_array(cls, array: ArrayLike) -> Tensor:
        """Wrap an n-dimensional array, taking the shape from it."""
        arr = np.asarray(array, dtype=np.float32)
        return cls(arr.shape, arr)

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def rank(self) -> int:
        return len(self._shape)

    @property
    def size(self) -> int:
        return self._data.size

    @property
    def data(self) -> NDArray[np.float32]:
        """Flat float32 buffer (not a copy)."""
        return self._data

    def as_array(self) -> NDArray[np.float32]:
        """Return the buffer reshaped to ``shape`` (a view)."""
        return self._data.reshape(self._shape)

    def value_range(self) -> tuple[float, float]:
        return scan_range(self._data)

    def planes(self, width: int, height: int) -> NDArray[np.float32]:
        """Return the R, G, B planes of a planar tensor as a ``(3, height*width)`` view.

        Accepts ``[C, H, W]`` or ``[1, C, H, W]`` with at least three channels;
        extra channels are ignored.

        Raises:
            UnsupportedRankError: If the rank is not 3 or 4, or the batch size is not 1.
            ShapeMismatchError: If the spatial size differs from ``width`` x ``height``
                or there are fewer than three channels.
        """
        if self.rank not in PLANAR_RANKS:
            raise UnsupportedRankError(f"Expected a rank 3 or 4 tensor, got rank {self.rank} {list(self._shape)}")
        if self.rank == 4 and self._shape[0] != 1:
            raise UnsupportedRankError(f"Only batch size 1 is supported, got {self._shape[0]}")

        channels, tensor_height, tensor_width = self._shape[-3:]
        if (tensor_height, tensor_width) != (height, width):
            raise ShapeMismatchError(
                f"Tensor spatial size {tensor_width}x{tensor_height} does not match target {width}x{height}"
            )
        if channels < RGB_CHANNELS:
            raise ShapeMismatchError(f"Expected at least {RGB_CHANNELS} channels, got {channels}")

        plane = width * height
        return self._data[: RGB_CHANNELS * plane].reshape(RGB_CHANNELS, plane)

    def to_feed(self, input_name: str) -> dict[str, NDArray[np.float32]]:
        """Build an ONNX Runtime input feed for this tensor."""
        return {input_name: self.as_array()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tensor):
            return NotImplemented
        return self._shape == other._shape and np.array_equal(self._data, other._data)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Tensor(shape={list(self._shape)}, dtype=float32)"
