"""Normalization profile registry.

A profile bundles the canvas size a model expects with the per-channel
mean/std used to normalize its input (or, for the output side, to map the
model's output back into [0, 1]). The set of profiles is fixed at import time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from tensorcanvas.errors import ConfigError


class ProfileName(StrEnum):
    DEFAULT = "default"
    STYLE_TRANSFER = "style_transfer"
    STYLE_TRANSFER_SIMPLE = "style_transfer_simple"
    STYLE_TRANSFER_NO_NORM = "style_transfer_no_norm"


@dataclass(frozen=True)
class NormalizationProfile:
    """Static metadata for a single normalization scheme."""

    name: str
    width: int
    height: int
    mean: tuple[float, ...]
    std: tuple[float, ...]
    channels: int = 3

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"Profile '{self.name}' has non-positive size {self.width}x{self.height}")
        if not (len(self.mean) == len(self.std) == self.channels):
            raise ConfigError(
                f"Profile '{self.name}' needs {self.channels} mean/std values, "
                f"got {len(self.mean)} mean and {len(self.std)} std"
            )
        if any(s == 0 for s in self.std):
            raise ConfigError(f"Profile '{self.name}' has a zero std entry")

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


_IMAGENET_MEAN = (0.485, 0.456, 0.406)
_IMAGENET_STD = (0.229, 0.224, 0.225)

PROFILE_REGISTRY: dict[str, NormalizationProfile] = {
    ProfileName.DEFAULT: NormalizationProfile(
        name=ProfileName.DEFAULT,
        width=224,
        height=224,
        mean=_IMAGENET_MEAN,
        std=_IMAGENET_STD,
    ),
    ProfileName.STYLE_TRANSFER: NormalizationProfile(
        name=ProfileName.STYLE_TRANSFER,
        width=224,
        height=224,
        mean=_IMAGENET_MEAN,
        std=_IMAGENET_STD,
    ),
    # Maps [0, 1] pixels onto [-1, 1].
    ProfileName.STYLE_TRANSFER_SIMPLE: NormalizationProfile(
        name=ProfileName.STYLE_TRANSFER_SIMPLE,
        width=224,
        height=224,
        mean=(0.5, 0.5, 0.5),
        std=(0.5, 0.5, 0.5),
    ),
    ProfileName.STYLE_TRANSFER_NO_NORM: NormalizationProfile(
        name=ProfileName.STYLE_TRANSFER_NO_NORM,
        width=224,
        height=224,
        mean=(0.0, 0.0, 0.0),
        std=(1.0, 1.0, 1.0),
    ),
}


def get_profile(name: str | ProfileName) -> NormalizationProfile:
    """Look up a profile by name.

    Raises:
        ConfigError: If no profile is registered under ``name``.
    """
    try:
        return PROFILE_REGISTRY[name]
    except KeyError:
        known = ", ".join(available_profiles())
        raise ConfigError(f"Unknown profile: {name!r} (known: {known})") from None


def available_profiles() -> list[str]:
    """Return the registered profile names in definition order."""
    return [str(name) for name in PROFILE_REGISTRY]
