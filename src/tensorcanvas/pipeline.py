"""End-to-end transcoding: image bytes -> tensor -> engine -> tensor -> pixels.

Each stage validates its own input and raises immediately. ``stage()`` tags
the error with the stage name on its way out so the caller can tell where a
request failed. Nothing is retried; a failed request produces no output.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from tensorcanvas.config import Settings, get_settings
from tensorcanvas.errors import TensorCanvasError
from tensorcanvas.ml.decoder import ImageDecoder
from tensorcanvas.ml.denormalizer import denormalize_with
from tensorcanvas.ml.normalizer import normalize
from tensorcanvas.ml.profiles import NormalizationProfile, ProfileName, get_profile
from tensorcanvas.ml.resize import resize_and_crop

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tensorcanvas.ml.inference import EngineHandle, InferencePool
    from tensorcanvas.ml.pixels import PixelGrid
    from tensorcanvas.ml.tensor import Tensor

logger = logging.getLogger(__name__)

AUTO_OUTPUT = "auto"

ProfileRef = str | ProfileName | NormalizationProfile


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Attach ``name`` to any TensorCanvasError raised inside the block."""
    try:
        yield
    except TensorCanvasError as exc:
        if exc.stage is None:
            exc.stage = name
        logger.warning("Stage %s failed: %s", name, exc.message)
        raise


def _resolve(profile: ProfileRef) -> NormalizationProfile:
    if isinstance(profile, NormalizationProfile):
        return profile
    return get_profile(profile)


class TranscodePipeline:
    """Runs the preprocessing and postprocessing stages around an engine call."""

    def __init__(self, settings: Settings | None = None, decoder: ImageDecoder | None = None) -> None:
        self._settings = settings or get_settings()
        self._decoder = decoder or ImageDecoder.from_settings(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    def input_profile(self, profile: ProfileRef | None = None) -> NormalizationProfile:
        with stage("profile"):
            return _resolve(profile if profile is not None else self._settings.profile)

    def output_profile(self, profile: ProfileRef | None = None) -> NormalizationProfile | None:
        """Resolve the output profile; ``None`` means auto-detect."""
        ref = profile if profile is not None else self._settings.output_profile
        if isinstance(ref, str) and ref == AUTO_OUTPUT:
            return None
        with stage("profile"):
            return _resolve(ref)

    def prepare(self, grid: PixelGrid, profile: ProfileRef | None = None) -> Tensor:
        """Resize and normalize an already decoded grid."""
        resolved = self.input_profile(profile)
        with stage("resize"):
            canvas = resize_and_crop(grid, resolved.width, resolved.height)
        with stage("normalize"):
            return normalize(canvas, resolved)

    async def preprocess(self, image_bytes: bytes, profile: ProfileRef | None = None) -> Tensor:
        """Decode, resize and normalize encoded image bytes."""
        resolved = self.input_profile(profile)
        logger.info("Preprocessing %d bytes with profile '%s'", len(image_bytes), resolved.name)
        with stage("decode"):
            grid = await self._decoder.decode_async(image_bytes)
        logger.info("Decoded image is %dx%d", grid.width, grid.height)
        return self.prepare(grid, resolved)

    def postprocess(
        self,
        tensor: Tensor,
        width: int,
        height: int,
        output_profile: ProfileRef | None = None,
    ) -> PixelGrid:
        """Turn a model output tensor back into pixels."""
        resolved = self.output_profile(output_profile)
        with stage("denormalize"):
            return denormalize_with(tensor, width, height, resolved)

    async def transcode(
        self,
        image_bytes: bytes,
        engine: EngineHandle,
        *,
        profile: ProfileRef | None = None,
        output_profile: ProfileRef | None = None,
        pool: InferencePool | None = None,
    ) -> PixelGrid:
        """Run the whole pipeline for one request.

        Args:
            image_bytes: Encoded input image.
            engine: Open inference session.
            profile: Input profile; defaults to ``settings.profile``.
            output_profile: Profile describing the model output space, or
                ``"auto"``; defaults to ``settings.output_profile``.
            pool: Optional pool bounding concurrent engine calls. Without one
                the call runs in the loop's default executor.

        Returns:
            The output image at the input profile's canvas size.
        """
        resolved = self.input_profile(profile)
        tensor = await self.preprocess(image_bytes, resolved)

        with stage("inference"):
            if pool is not None:
                output = await pool.infer(engine, tensor)
            else:
                loop = asyncio.get_running_loop()
                output = await loop.run_in_executor(None, engine.run, tensor)

        result = self.postprocess(output, resolved.width, resolved.height, output_profile)
        logger.info("Transcoded image with %s to %dx%d", engine.name, result.width, result.height)
        return result
