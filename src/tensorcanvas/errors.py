"""Exception hierarchy for the transcoding pipeline.

Every stage raises one of these types as soon as a precondition fails. The
pipeline records the name of the failing stage on the exception before it
reaches the caller; nothing is retried.
"""

from __future__ import annotations


class TensorCanvasError(Exception):
    """Base class for all transcoding errors."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage is None:
            return self.message
        return f"[{self.stage}] {self.message}"


class DecodeError(TensorCanvasError):
    """Input bytes are malformed, too large, or in an unsupported format."""


class SurfaceError(TensorCanvasError):
    """The drawing surface used for resizing could not be created."""


class InvalidDimensionsError(TensorCanvasError):
    """A width or height is zero or negative."""


class ShapeMismatchError(TensorCanvasError):
    """Element count or spatial size does not match the declared shape."""


class UnsupportedRankError(TensorCanvasError):
    """Tensor rank is not 3 or 4, or the batch dimension is not 1."""


class NonFiniteValueError(TensorCanvasError):
    """A tensor holds NaN or infinite values and cannot be mapped to pixels."""


class ConfigError(TensorCanvasError):
    """Unknown profile name or an invalid profile definition."""


class EngineNotInitializedError(TensorCanvasError):
    """An inference call was made on a closed engine handle."""


class InferenceError(TensorCanvasError):
    """The inference engine rejected the request or failed while running it."""
