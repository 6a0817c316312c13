"""
Concatenation manifest for slideshow module.

Builds and parses the list file consumed by FFmpeg's concat demuxer:
one `file '<path>'` line per segment, in segment order.
"""
from pathlib import Path
from typing import Iterable, List, Union

PathLike = Union[str, Path]

_LINE_PREFIX = "file "


def escape_manifest_path(path: PathLike) -> str:
    """Double backslashes and close/escape/reopen around single quotes."""
    return str(path).replace("\\", "\\\\").replace("'", "'\\''")


def format_manifest_line(path: PathLike) -> str:
    return f"{_LINE_PREFIX}'{escape_manifest_path(path)}'"


def build_manifest(paths: Iterable[PathLike]) -> str:
    """
    Build manifest text for an ordered list of segment paths.

    Args:
        paths: Segment paths in index order

    Returns:
        Manifest text, one line per segment
    """
    return "\n".join(format_manifest_line(p) for p in paths) + "\n"


def write_manifest(paths: Iterable[PathLike], manifest_path: Path) -> Path:
    manifest_path.write_text(build_manifest(paths), encoding="utf-8")
    return manifest_path


def _unquote(token: str) -> str:
    # Inverse of escape_manifest_path: inside quotes only doubled backslashes
    # are escapes, outside quotes a backslash escapes the next character.
    result: List[str] = []
    in_quotes = False
    i = 0
    while i < len(token):
        char = token[i]
        if char == "'":
            in_quotes = not in_quotes
        elif char == "\\" and i + 1 < len(token):
            if in_quotes and token[i + 1] != "\\":
                result.append(char)
            else:
                result.append(token[i + 1])
                i += 1
        else:
            result.append(char)
        i += 1
    if in_quotes:
        raise ValueError(f"Unterminated quote in manifest entry: {token}")
    return "".join(result)


def parse_manifest(text: str) -> List[str]:
    """
    Parse manifest text back into the ordered list of paths.

    Blank lines and `#` comments are ignored, as the concat demuxer does.

    Raises:
        ValueError: If a line is not a `file` directive or is badly quoted
    """
    paths: List[str] = []
    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if not line.startswith(_LINE_PREFIX):
            raise ValueError(f"Unsupported manifest directive on line {line_number}: {line}")
        paths.append(_unquote(line[len(_LINE_PREFIX):].strip()))
    return paths
