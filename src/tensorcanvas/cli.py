"""Command line entry point.

Usage:
    tensorcanvas photo.jpg --model models/candy.onnx --output styled.png
    tensorcanvas photo.jpg --model models/candy.onnx --profile style_transfer_simple --output-profile auto
    tensorcanvas --list-profiles
"""

from __future__ import annotations

import argparse
import asyncio
import io
import logging
import sys
from pathlib import Path

from PIL import Image

from tensorcanvas.config import Settings, get_settings
from tensorcanvas.errors import TensorCanvasError
from tensorcanvas.ml.inference import InferencePool, open_engine
from tensorcanvas.ml.pixels import PixelGrid
from tensorcanvas.ml.profiles import PROFILE_REGISTRY
from tensorcanvas.pipeline import AUTO_OUTPUT, TranscodePipeline

logger = logging.getLogger(__name__)


def encode_png(grid: PixelGrid) -> bytes:
    """Encode a pixel grid as PNG bytes."""
    image = Image.frombytes("RGBA", (grid.width, grid.height), grid.pixels)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tensorcanvas",
        description="Run an image through an ONNX image-to-image model",
    )
    parser.add_argument("image", nargs="?", type=Path, help="Input image file")
    parser.add_argument("--model", "-m", type=Path, help="Path to the .onnx model")
    parser.add_argument("--output", "-o", type=Path, default=Path("output.png"), help="Output PNG path")
    parser.add_argument("--profile", "-p", help="Input normalization profile")
    parser.add_argument(
        "--output-profile",
        help=f"Profile of the model output space, or '{AUTO_OUTPUT}' to detect it",
    )
    parser.add_argument("--list-profiles", action="store_true", help="List profiles and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if not args.list_profiles and (args.image is None or args.model is None):
        parser.error("an input image and --model are required")
    return args


def _print_profiles() -> None:
    for name, profile in PROFILE_REGISTRY.items():
        print(f"{name:<24} {profile.width}x{profile.height}  mean={list(profile.mean)}  std={list(profile.std)}")


async def _transcode(args: argparse.Namespace, settings: Settings) -> PixelGrid:
    pipeline = TranscodePipeline(settings)
    pool = InferencePool(settings)
    try:
        with open_engine(args.model, settings) as engine:
            return await pipeline.transcode(
                args.image.read_bytes(),
                engine,
                profile=args.profile,
                output_profile=args.output_profile,
                pool=pool,
            )
    finally:
        pool.shutdown()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.list_profiles:
        _print_profiles()
        return 0

    try:
        grid = asyncio.run(_transcode(args, settings))
    except TensorCanvasError as exc:
        logger.error("Transcoding failed: %s", exc)
        return 1
    except OSError as exc:
        logger.error("Could not read %s: %s", args.image, exc)
        return 1

    args.output.write_bytes(encode_png(grid))
    logger.info("Wrote %s (%dx%d)", args.output, grid.width, grid.height)
    return 0


if __name__ == "__main__":
    sys.exit(main())
