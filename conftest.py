import numpy as np
import pytest

from models.image import Image
from services.image_transformer import ImageTransformer

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


@pytest.fixture
def rgbw_image() -> Image:
    """2x2 image: red, green on the first row; blue, white on the second."""
    pixels = np.array([[RED, GREEN], [BLUE, WHITE]], dtype=np.uint8)
    return Image(pixels=pixels)


@pytest.fixture
def random_image() -> Image:
    rng = np.random.default_rng(7)
    return Image(pixels=rng.integers(0, 256, size=(12, 17, 4), dtype=np.uint8))


@pytest.fixture
def transformer() -> ImageTransformer:
    return ImageTransformer(default_threshold=119, strict_threshold=True)
