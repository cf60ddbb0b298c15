"""Recursive discovery of candidate source images."""

import os
from pathlib import Path
from typing import Iterable, List, Optional

from .logging import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp", ".bmp"})


def find_images(
    root: Path,
    extensions: Iterable[str] = IMAGE_EXTENSIONS,
    exclude: Optional[Iterable[Path]] = None,
) -> List[Path]:
    """
    Collect image files below ``root`` whose extension is in ``extensions``.

    Matching is case-insensitive. Subdirectories that cannot be listed are
    skipped without error, as are any directories in ``exclude`` (typically
    the output directory when it sits inside the source tree).

    Args:
        root: Directory to search
        extensions: Allowed extensions, with leading dot
        exclude: Directories not to descend into

    Returns:
        Sorted list of matching file paths
    """
    allowed = {ext.lower() for ext in extensions}
    excluded = {Path(p).resolve() for p in (exclude or [])}
    images: List[Path] = []

    def _skip(err: OSError) -> None:
        logger.debug(f"Skipping unreadable directory {err.filename}: {err.strerror}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_skip):
        if excluded:
            dirnames[:] = [
                d for d in dirnames if (Path(dirpath) / d).resolve() not in excluded
            ]
        for name in filenames:
            if os.path.splitext(name)[1].lower() in allowed:
                images.append(Path(dirpath) / name)

    images.sort()
    logger.info(f"Found {len(images)} candidate images under {root}")
    return images
