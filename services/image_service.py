from pathlib import Path
from typing import Iterable, Union, Iterator, Sequence, Tuple
from io import BytesIO
import base64
import numpy as np
from PIL import Image as PILImage
from models.image import Image
from repositories.image_repository import ImageRepository


class ImageService:
    """I/O helpers around the pure transform core.  No pixel math here."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def from_buffer(self, width: int, height: int,
                    buffer: Sequence[Tuple[int, int, int, int]]) -> Image:
        return self.image_repository.from_buffer(width, height, buffer)

    def load(self, path: Union[str, Path]) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path)

    def decode(self, data: bytes, filename: Union[str, Path] = None) -> Image:
        """Decode uploaded bytes into an Image object."""
        return self.image_repository.decode(data, filename)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def save(self, image: Image, path: Union[str, Path] = None) -> Path:
        """
        Business-level method to save the image to its own or a given path.
        """
        return self.image_repository.save(image, path)

    def to_pil_image(self, img: Image) -> PILImage.Image:
        """
        Convert Image.pixels → PIL Image object.
        Ensures the NumPy array is C-contiguous.
        """
        np_img = img.pixels
        if not np_img.flags['C_CONTIGUOUS']:
            np_img = np.ascontiguousarray(np_img)

        return PILImage.fromarray(np_img)

    def to_png_bytes(self, img: Image) -> bytes:
        buffer = BytesIO()
        self.to_pil_image(img).save(buffer, format='PNG')
        return buffer.getvalue()

    def to_data_url(self, img: Image) -> str:
        """PNG data URL for JSON responses (PNG keeps the alpha channel)."""
        base64_string = base64.b64encode(self.to_png_bytes(img)).decode('utf-8')
        return f"data:image/png;base64,{base64_string}"
