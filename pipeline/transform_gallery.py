# pipeline/transform_gallery.py
from pathlib import Path
import logging
import os
from typing import Iterable, Iterator, List, Optional, Set

from dotenv import load_dotenv
from tqdm import tqdm

from models.image import Image
from services.image_transformer import ImageTransformer

# ------------------------------------------------------------------
# env‑vars
load_dotenv()
OUTPUT_DIR = os.getenv("OUTPUT_DIR_PATH", "data/transformed")
OUTPUT_EXT = os.getenv("OUTPUT_IMG_EXT", ".png")          # e.g. ".png"

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
def output_path_for(img: Image, transform: str, output_dir: str | Path, ext: str,
                    index: int, source_root: str | Path | None = None) -> Path:
    """
    <output_dir>/<sub-folders below source_root>/<stem>_<transform><ext>
    """
    if img.path is None:
        return Path(output_dir) / f"image_{index:03d}_{transform}{ext}"

    src = Path(img.path)
    subdir = Path()
    if source_root is not None and src.is_relative_to(source_root):
        subdir = src.relative_to(source_root).parent
    return Path(output_dir) / subdir / f"{src.stem}_{transform}{ext}"


def iter_transform_gallery(
    gallery: Iterable[Image],
    transform: str,
    *,
    threshold: Optional[int]          = None,
    transformer: ImageTransformer     = None,
    output_dir: str | Path            = OUTPUT_DIR,
    ext: str                          = OUTPUT_EXT,
    source_root: str | Path | None    = None,
    show_progress: bool               = True,
) -> Iterator[Image]:
    """
    For every Image in *gallery*:
        • make it the transformer's current image
        • apply *transform* (see TRANSFORMS)
        • give the result a path under *output_dir*, unique within this run
    Yields new Image objects one at a time; the inputs are left untouched.
    """
    transformer = transformer or ImageTransformer()
    output_ext = ext or ".png"
    used: Set[Path] = set()

    count = 0
    for i, img in enumerate(tqdm(gallery, desc=transform, ncols=70, disable=not show_progress)):
        transformer.replace(img)
        out = transformer.apply(transform, threshold)

        path = output_path_for(img, transform, output_dir, output_ext, i, source_root)
        if path in used:
            path = path.with_stem(f"{path.stem}_{i:03d}")
        used.add(path)

        out.path = path
        count += 1
        yield out

    logger.info(f"Applied '{transform}' to {count} images")


def transform_gallery(gallery: Iterable[Image], transform: str, **kwargs) -> List[Image]:
    """List form of iter_transform_gallery."""
    return list(iter_transform_gallery(gallery, transform, **kwargs))
