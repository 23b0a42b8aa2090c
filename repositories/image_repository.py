from pathlib import Path
from typing import Union, Iterable, Iterator, Sequence, Tuple
import logging
import os
import signal
import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv
from models.image import Image
from models.color_space import ColorSpace
from models.errors import AllocationError, InvalidImageError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

_OPAQUE = 255


class ImageRepository:
    """
    Handles file I/O and buffer construction for Image entities.
    """
    def __init__(self):
        # Load as set
        self.VALID_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.bmp,.webp").split(",")
        }
        self.LOAD_TIMEOUT = int(os.getenv("IMAGE_LOAD_TIMEOUT", "5"))

    @staticmethod
    def to_rgba(pixels: np.ndarray) -> np.ndarray:
        """
        Normalise gray (H, W), RGB (H, W, 3) or RGBA (H, W, 4) uint8 arrays to RGBA.
        """
        pixels = np.asarray(pixels)
        if pixels.dtype != np.uint8:
            raise InvalidImageError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.ndim == 2:
            pixels = np.dstack((pixels, pixels, pixels))
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidImageError(f"Unsupported pixel layout: {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidImageError(f"Image dimensions must be positive: {pixels.shape[1]}x{pixels.shape[0]}")
        if pixels.shape[2] == 3:
            alpha = np.full(pixels.shape[:2], _OPAQUE, dtype=np.uint8)
            pixels = np.dstack((pixels, alpha))
        return np.ascontiguousarray(pixels)

    @classmethod
    def create_image(cls, pixels: np.ndarray, path: Union[str, Path] = None,
                     color_space: ColorSpace = ColorSpace.RGB) -> Image:
        rgba = cls.to_rgba(pixels)
        if path is None:
            return Image(rgba, color_space=color_space)
        return Image(pixels=rgba, path=Path(path), color_space=color_space)

    @staticmethod
    def from_buffer(width: int, height: int,
                    buffer: Sequence[Tuple[int, int, int, int]]) -> Image:
        """
        Build an Image from a flat RGBA sequence laid out by ``i + j*width``.
        """
        if width <= 0 or height <= 0:
            raise InvalidImageError(f"Image dimensions must be positive: {width}x{height}")
        if len(buffer) != width * height:
            raise AllocationError(
                f"Buffer holds {len(buffer)} pixels, {width}x{height} needs {width * height}"
            )
        try:
            flat = np.asarray(buffer, dtype=np.uint8)
        except (TypeError, ValueError, OverflowError) as err:
            raise InvalidImageError(f"Buffer is not a sequence of RGBA tuples: {err}") from err
        if flat.shape != (width * height, 4):
            raise InvalidImageError(f"Buffer entries must be RGBA 4-tuples, got shape {flat.shape}")
        return Image(pixels=flat.reshape(height, width, 4).copy())

    @staticmethod
    def validate(image: Image) -> None:
        pixels = getattr(image, "pixels", None)
        if not isinstance(pixels, np.ndarray):
            raise InvalidImageError("Image has no pixel buffer")
        if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
            raise InvalidImageError(f"Expected (H, W, 4) uint8 pixels, got {pixels.shape} {pixels.dtype}")
        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise InvalidImageError(f"Image dimensions must be positive: {pixels.shape[1]}x{pixels.shape[0]}")

    def load(self, path: Union[str, Path]) -> Image:
        path = Path(path)
        timeout = self.LOAD_TIMEOUT

        # ─── timeout wrapper (5 s default) ────────────────────────────────
        def _handler(signum, frame):
            raise TimeoutError(f"cv2.imread timed-out after {timeout}s: {path}")

        signal.signal(signal.SIGALRM, _handler)
        signal.alarm(timeout)
        try:
            arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        finally:
            signal.alarm(0)  # always disarm
        # ──────────────────────────────────────────────────────────────────

        if arr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return Image(pixels=self._cv_to_rgba(arr), path=path)

    def decode(self, data: bytes, path: Union[str, Path] = None) -> Image:
        """Decode an encoded image held in memory (e.g. an upload)."""
        if not data:
            raise InvalidImageError("No image bytes provided")
        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise InvalidImageError("Bytes could not be decoded as an image")
        return self.create_image(self._cv_to_rgba(arr), path)

    @staticmethod
    def _cv_to_rgba(arr: np.ndarray) -> np.ndarray:
        """OpenCV BGR(A) or gray, any integer depth → RGBA uint8."""
        if arr.dtype != np.uint8:
            arr = cv2.convertScaleAbs(arr, alpha=255.0 / np.iinfo(arr.dtype).max)
        if arr.ndim == 2:
            rgba = cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
        elif arr.shape[2] == 4:
            rgba = cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(arr, cv2.COLOR_BGR2RGBA)
        return rgba

    @staticmethod
    def save(image: Image, path: Union[str, Path] = None) -> Path:
        target = Path(path or image.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        pil_img = PILImage.fromarray(image.pixels)
        if target.suffix.lower() in (".jpg", ".jpeg"):
            # JPEG carries no alpha
            pil_img = pil_img.convert("RGB")
        pil_img.save(target)
        return target

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            if not p.is_file():
                logger.debug(f"Skipping because not file: {p}")
                continue
            try:
                yield self.load(p)
                logger.debug(f"Loaded: {p}")
            except (FileNotFoundError, TimeoutError) as err:
                logger.warning(f"Skipping {p.name}: {err}")

