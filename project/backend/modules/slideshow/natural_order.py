"""
Natural ordering of image filenames.

Groups "Shot.png", "Shot (1).png", "Shot (2).png" together: the base image
first, numbered variants after it in ascending numeric order. Base labels
are compared with the Unicode Collation Algorithm (root locale), so accented
and non-Latin labels sort among their base letters instead of after ASCII.
"""
import re
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from pyuca import Collator

from shared.errors import InputError
from shared.logging import get_logger
from shared.models.composition import ImageAsset
from .config import IMAGE_EXTENSIONS

logger = get_logger("slideshow.natural_order")

# "Shot (2).png" -> ("Shot", "2", ".png")
NUMBERED_NAME_PATTERN = re.compile(r"^(.+?)\s*\((\d+)\)(\..+)$")
EXTENSION_PATTERN = re.compile(r"\..*$")
PREFIX_PATTERN = re.compile(r"^(.*?)((\s*\(\d+\))?)\.(png|jpg|jpeg|bmp|tiff)$", re.IGNORECASE)


def parse_image_asset(filename: str, path: Optional[Path] = None) -> ImageAsset:
    """
    Split a filename into base label and optional parenthesized number.

    Args:
        filename: Original filename, e.g. "Shot (2).png"
        path: Where the image is staged on disk

    Returns:
        ImageAsset with base_name and sequence_number populated
    """
    match = NUMBERED_NAME_PATTERN.match(filename)
    if match:
        return ImageAsset(
            filename=filename,
            base_name=match.group(1),
            sequence_number=int(match.group(2)),
            path=path
        )
    return ImageAsset(
        filename=filename,
        base_name=EXTENSION_PATTERN.sub("", filename),
        sequence_number=None,
        path=path
    )


@lru_cache(maxsize=1)
def _collator() -> Collator:
    # Loads the DUCET table once
    return Collator()


def _collation_key(text: str) -> Tuple[Tuple[int, ...], str]:
    # Raw text breaks ties between labels that collate equal but differ
    return _collator().sort_key(text), text


def natural_sort_key(asset: ImageAsset) -> Tuple[Tuple[Tuple[int, ...], str], bool, int]:
    """Sort key: base label, then unnumbered before numbered, then number."""
    has_number = asset.sequence_number is not None
    return _collation_key(asset.base_name), has_number, asset.sequence_number or 0


def resolve_order(items: Sequence[Union[str, ImageAsset]]) -> List[ImageAsset]:
    """
    Compute the natural total order of a set of images.

    Entries with the same base label and no number keep their input order.

    Args:
        items: Filenames or already parsed assets

    Returns:
        Assets in natural order

    Raises:
        InputError: If no images are given
    """
    if not items:
        raise InputError("No image files found")

    assets = [item if isinstance(item, ImageAsset) else parse_image_asset(item) for item in items]
    ordered = sorted(assets, key=natural_sort_key)

    logger.info(
        f"Processing images in this order: {[a.filename for a in ordered]}",
        extra={"image_count": len(ordered)}
    )
    return ordered


def is_image_file(filename: str) -> bool:
    return Path(filename).suffix.lower() in IMAGE_EXTENSIONS


def list_image_files(folder: Path) -> List[str]:
    """
    List image files in a folder in natural order.

    Args:
        folder: Directory to scan (not recursive)

    Returns:
        Filenames in natural order (empty if the folder has no images)
    """
    names = [p.name for p in Path(folder).iterdir() if p.is_file() and is_image_file(p.name)]
    if not names:
        return []
    return [asset.filename for asset in resolve_order(names)]


def list_image_prefixes(folder: Path) -> List[str]:
    """
    Distinct base labels of the images in a folder, sorted.

    "Shot.png" and "Shot (3).png" both contribute the prefix "Shot".
    """
    prefixes = set()
    for path in Path(folder).iterdir():
        if not path.is_file() or not is_image_file(path.name):
            continue
        match = PREFIX_PATTERN.match(path.name)
        if match:
            prefixes.add(match.group(1))
    return sorted(prefixes)
