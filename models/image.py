from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
import numpy as np

from models.color_space import ColorSpace


@dataclass
class Image:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    The meaning of the three colour channels follows `color_space`.
    """
    pixels: np.ndarray # Shape (H, W, 4), dtype uint8, RGBA order (or L, a, b, A).
    path: Path | None = None # Source of the image.
    color_space: ColorSpace = ColorSpace.RGB

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the reverse of ``pixels.shape[:2]``."""
        return self.width, self.height

    def pixel(self, i: int, j: int) -> Tuple[int, int, int, int]:
        """Pixel at column *i*, row *j* (linear index ``i + j*width``)."""
        return tuple(int(c) for c in self.pixels[j, i])

    def flat(self) -> np.ndarray:
        """(width*height, 4) view in linear index order."""
        return self.pixels.reshape(-1, 4)
