"""Recovery: re-derive the hash log from the files in an output directory."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import imagehash
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .convert.encode import OUTPUT_SUFFIX
from .convert.pipeline import StartupError
from .dedup.hash import HashComputationError, Hasher
from .dedup.log import HashLog
from .logging import get_logger, package_loggers

logger = get_logger(__name__)


@dataclass(frozen=True)
class RebuildSummary:
    log_path: Path
    hashed: int
    skipped: int


def list_outputs(output_dir: Path) -> List[Path]:
    """Encoded output files directly inside ``output_dir``, sorted by name."""
    return sorted(
        p for p in Path(output_dir).iterdir()
        if p.is_file() and p.suffix.lower() == OUTPUT_SUFFIX
    )


def rebuild(
    output_dir: Path,
    hasher: Hasher,
    workers: Optional[int] = None,
    progress: bool = True,
) -> RebuildSummary:
    """
    Overwrite the hash log with one hash per output file.

    Output files are treated as ground truth: no duplicate check is made
    between them. Files that cannot be decoded are skipped and counted.

    Raises:
        StartupError: If ``output_dir`` is not an existing directory
    """
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        raise StartupError(f"Output directory {output_dir} does not exist")

    outputs = list_outputs(output_dir)
    logger.info(f"Rebuilding hash log from {len(outputs)} files in {output_dir}")

    def _hash(path: Path) -> Optional[imagehash.ImageHash]:
        try:
            return hasher.hash_path(path)
        except HashComputationError as exc:
            logger.warning(f"Skipping {path}: {exc.__cause__ or exc}")
            return None

    with logging_redirect_tqdm(loggers=package_loggers()):
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(tqdm(
                executor.map(_hash, outputs),
                total=len(outputs),
                unit="img",
                disable=not progress,
            ))

    hashes = [h for h in results if h is not None]
    log = HashLog.in_dir(output_dir)
    log.rewrite(hashes)

    summary = RebuildSummary(log_path=log.path, hashed=len(hashes), skipped=len(results) - len(hashes))
    logger.info(f"Rebuilt {summary.log_path}: {summary.hashed} hashes, {summary.skipped} skipped")
    return summary
