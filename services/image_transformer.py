from __future__ import annotations

import logging
import os
from typing import Callable, Dict, Optional

import numpy as np
from dotenv import load_dotenv

from models.color_space import ColorSpace, LabChannel
from models.errors import AllocationError, InvalidArgumentError, InvalidImageError
from models.image import Image
from repositories.color_repository import ColorRepository
from repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

TRANSFORMS = ("original", "grayscale", "binary", "lab", "extract_a", "extract_b")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class ImageTransformer:
    """
    Holds exactly one "current" Image and derives new images from it.
    *   Pure: transforms never touch the held image, every result is a fresh buffer.
    *   No I/O here, works only with Image objects (RGBA numpy arrays).
    *   Not thread-safe; callers sharing one instance must synchronise.
    """

    def __init__(self,
                 image: Image | None = None,
                 default_threshold: int = None,
                 strict_threshold: bool = None):
        """
        Args:
            image: Initial current image (optional)
            default_threshold: Threshold used by apply("binary") (defaults to env var)
            strict_threshold: Reject thresholds outside [0, 255] (defaults to env var)
        """
        self.default_threshold = (
            default_threshold if default_threshold is not None
            else int(os.getenv("BINARY_THRESHOLD", "119"))
        )
        self.strict_threshold = (
            strict_threshold if strict_threshold is not None
            else _env_flag("STRICT_THRESHOLD", "true")
        )
        self.colors = ColorRepository()
        self._image: Image | None = None
        if image is not None:
            self.replace(image)

    # ─── Current image slot ────────────────────────────────────────
    def replace(self, new_image: Image) -> None:
        """
        Take ownership of *new_image*, releasing the previously held one.
        """
        ImageRepository.validate(new_image)
        if self._image is not None:
            logger.debug(f"Releasing {self._image.width}x{self._image.height} image")
        self._image = new_image
        logger.info(f"Current image replaced: {new_image.width}x{new_image.height} "
                    f"({new_image.color_space.value})")

    def current(self) -> Image | None:
        """Shared reference to the held image. Do not mutate it in place."""
        return self._image

    def _require_image(self) -> Image:
        if self._image is None:
            raise InvalidImageError("No current image: call replace() first")
        return self._image

    @staticmethod
    def _allocate(build: Callable[[], np.ndarray]) -> np.ndarray:
        try:
            return build()
        except MemoryError as err:
            raise AllocationError(f"Could not allocate output buffer: {err}") from err

    # ─── Public API ────────────────────────────────────────────────
    def to_grayscale(self) -> Image:
        """
        Desaturate with BT.601 luma weights. R = G = B = luma, alpha preserved.
        """
        src = self._require_image()
        pixels = self._allocate(
            lambda: self.colors.gray_to_rgba(self.colors.luma(src.pixels), src.pixels[..., 3])
        )
        logger.debug(f"Grayscale computed for {src.width}x{src.height} image")
        return Image(pixels=pixels, path=src.path)

    def to_binary(self, threshold: int) -> Image:
        """
        Pixels whose luma is below *threshold* become opaque black, the rest
        opaque white. Source alpha is discarded.
        """
        if isinstance(threshold, bool) or not isinstance(threshold, (int, np.integer)):
            raise InvalidArgumentError(f"Threshold must be an integer, got {threshold!r}")
        if self.strict_threshold and not 0 <= threshold <= 255:
            raise InvalidArgumentError(f"Threshold must be in [0, 255], got {threshold}")

        gray = self.to_grayscale()
        # R == G == B on the grayscale intermediate, so any colour channel is the luma
        pixels = self._allocate(lambda: self.colors.binarize(gray.pixels[..., 0], int(threshold)))
        logger.debug(f"Binary image computed with threshold {threshold}")
        return Image(pixels=pixels, path=gray.path)

    def to_lab(self) -> Image:
        """
        Convert to CIE L*a*b* and re-encode into 8-bit channels:
        L → round(L*255/100), a/b → round(v + 128). Alpha preserved.
        """
        src = self._require_image()
        pixels = self._allocate(
            lambda: self.colors.encode_lab(self.colors.rgb_to_lab(src.pixels[..., :3]),
                                           src.pixels[..., 3])
        )
        logger.debug(f"L*a*b* encoding computed for {src.width}x{src.height} image")
        return Image(pixels=pixels, path=src.path, color_space=ColorSpace.LAB)

    def extract_channel(self, channel: LabChannel) -> Image:
        """
        Intensity image of the a (A) or b (B) channel of the L*a*b* encoding.
        """
        if not isinstance(channel, LabChannel):
            raise InvalidArgumentError(f"Unknown L*a*b* channel: {channel!r}")
        lab = self.to_lab()
        pixels = self._allocate(lambda: self.colors.broadcast_channel(lab.pixels, channel.value))
        logger.debug(f"Extracted L*a*b* channel {channel.name}")
        return Image(pixels=pixels, path=lab.path)

    def copy_current(self) -> Image:
        src = self._require_image()
        pixels = self._allocate(src.pixels.copy)
        return Image(pixels=pixels, path=src.path, color_space=src.color_space)

    # ─── Menu dispatch ─────────────────────────────────────────────
    def apply(self, transform: str, threshold: Optional[int] = None) -> Image:
        """
        Run one transform by name (see TRANSFORMS).
        "binary" falls back to the configured default threshold.
        """
        actions: Dict[str, Callable[[], Image]] = {
            "original": self.copy_current,
            "grayscale": self.to_grayscale,
            "binary": lambda: self.to_binary(
                self.default_threshold if threshold is None else threshold
            ),
            "lab": self.to_lab,
            "extract_a": lambda: self.extract_channel(LabChannel.A),
            "extract_b": lambda: self.extract_channel(LabChannel.B),
        }
        if transform not in actions:
            raise InvalidArgumentError(
                f"Unknown transform {transform!r}; expected one of {', '.join(TRANSFORMS)}"
            )
        return actions[transform]()
