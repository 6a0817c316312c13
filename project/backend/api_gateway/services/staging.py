"""
Upload staging.

Writes uploaded images into a job's working directory and returns them as
assets that keep their original filenames for natural ordering.
"""

import re
from pathlib import Path
from typing import List, Sequence

from fastapi import UploadFile
from shared.errors import InputError
from shared.logging import get_logger
from shared.models.composition import ImageAsset
from modules.slideshow.natural_order import is_image_file, parse_image_asset

logger = get_logger(__name__)

IMAGES_SUBDIR = "images"


def sanitize_filename(filename: str) -> str:
    """
    Filesystem-safe version of an uploaded filename.

    Keeps word chars, hyphens, dots, spaces and parentheses; strips any
    directory part.
    """
    name = Path(filename.replace("\\", "/")).name
    sanitized = re.sub(r"[^\w\-. ()]", "_", name)
    sanitized = re.sub(r"_+", "_", sanitized).strip(" ._")
    return sanitized or "image"


async def stage_uploads(uploads: Sequence[UploadFile], work_dir: Path) -> List[ImageAsset]:
    """
    Stage uploaded images under <work_dir>/images.

    Each file is written as "<upload index>_<sanitized name>" so duplicate
    names never collide; ordering still uses the original filename.

    Args:
        uploads: Uploaded files
        work_dir: Job working directory

    Returns:
        Staged image assets in upload order

    Raises:
        InputError: If no uploaded file is a supported image
    """
    images_dir = work_dir / IMAGES_SUBDIR
    images_dir.mkdir(parents=True, exist_ok=True)

    assets: List[ImageAsset] = []
    for upload_index, upload in enumerate(uploads):
        original_name = Path((upload.filename or "").replace("\\", "/")).name
        if not original_name or not is_image_file(original_name):
            logger.warning(
                f"Skipping non-image upload: {upload.filename!r}",
                extra={"upload_filename": upload.filename}
            )
            continue

        staged_path = images_dir / f"{upload_index:03d}_{sanitize_filename(original_name)}"
        staged_path.write_bytes(await upload.read())
        assets.append(parse_image_asset(original_name, path=staged_path))

    if not assets:
        raise InputError("No image files found")

    logger.info(f"Staged {len(assets)} images", extra={"image_count": len(assets)})
    return assets
