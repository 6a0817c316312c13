"""
Music library for slideshow module.

Lists selectable background tracks and resolves a selection to a path.
"""
from pathlib import Path
from typing import List, Optional

from shared.logging import get_logger
from .config import MUSIC_EXTENSIONS

logger = get_logger("slideshow.music")


def list_music_files(music_dir: Path) -> List[str]:
    """
    List music files by extension allow-list, creating the folder if missing.

    Args:
        music_dir: Music library directory

    Returns:
        Sorted filenames
    """
    music_dir.mkdir(parents=True, exist_ok=True)
    return sorted(
        p.name for p in music_dir.iterdir()
        if p.is_file() and p.suffix.lower() in MUSIC_EXTENSIONS
    )


def resolve_music_path(music_dir: Path, selected: Optional[str]) -> Optional[Path]:
    """
    Resolve a selected track name inside the music library.

    Names that try to leave the library, use an unsupported extension or do
    not exist resolve to None (the job then produces a silent video).
    """
    if not selected:
        return None
    name = Path(selected).name
    if name != selected or name in {".", ".."} or Path(name).suffix.lower() not in MUSIC_EXTENSIONS:
        logger.warning(f"Rejected music selection: {selected!r}", extra={"music": selected})
        return None
    path = music_dir / name
    if not path.is_file():
        logger.warning(f"Selected music not found: {name}", extra={"music": name})
        return None
    return path
