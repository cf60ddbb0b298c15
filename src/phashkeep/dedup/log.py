"""Append-only text log that persists the hash store across runs."""

import os
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import imagehash

from .hash import MalformedHashError, decode_hash, encode_hash
from .store import HashStore
from ..logging import get_logger

logger = get_logger(__name__)

LOG_FILE_NAME = "hashes"


class HashLog:
    """
    The ``hashes`` file in an output directory: one encoded hash per line.

    Appends are serialised by a lock and each line goes out in one write,
    so concurrent workers never interleave partial lines.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    @classmethod
    def in_dir(cls, output_dir: Path) -> "HashLog":
        return cls(Path(output_dir) / LOG_FILE_NAME)

    def __repr__(self) -> str:
        return f"HashLog({str(self.path)!r})"

    def load(self, expected_shape: Optional[Tuple[int, int]] = None) -> List[imagehash.ImageHash]:
        """
        Read every well-formed hash from the log.

        A missing file loads as empty. Lines that do not decode, or whose
        shape differs from ``expected_shape``, are skipped with a warning.
        """
        if not self.path.exists():
            logger.info(f"No hash log at {self.path}, starting empty")
            return []

        hashes: List[imagehash.ImageHash] = []
        skipped = 0
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    image_hash = decode_hash(line)
                except MalformedHashError as exc:
                    logger.warning(f"{self.path}:{line_no}: skipping malformed hash ({exc})")
                    skipped += 1
                    continue
                if expected_shape is not None and image_hash.hash.shape != tuple(expected_shape):
                    logger.warning(
                        f"{self.path}:{line_no}: skipping hash of shape {image_hash.hash.shape}, "
                        f"expected {tuple(expected_shape)}"
                    )
                    skipped += 1
                    continue
                hashes.append(image_hash)

        logger.info(f"Loaded {len(hashes)} hashes from {self.path} ({skipped} skipped)")
        return hashes

    def append(self, image_hash: imagehash.ImageHash) -> None:
        """
        Durably add one line to the log.

        If the write or the fsync fails, the file is truncated back to its
        previous length before the error propagates, so a failed append never
        leaves a whole or partial line behind.
        """
        data = (encode_hash(image_hash) + "\n").encode("utf-8")
        with self._lock:
            with open(self.path, "ab", buffering=0) as f:
                end = f.seek(0, os.SEEK_END)
                try:
                    written = f.write(data)
                    if written != len(data):
                        raise OSError(f"short write to {self.path}: {written} of {len(data)} bytes")
                    os.fsync(f.fileno())
                except BaseException:
                    f.truncate(end)
                    raise

    def check_appendable(self) -> None:
        """Raise ``OSError`` unless the log can be opened for appending."""
        with open(self.path, "ab"):
            pass

    def rewrite(self, hashes: Iterable[imagehash.ImageHash]) -> int:
        """
        Replace the log with ``hashes``, one per line.

        Writes to a temporary sibling and renames it over the log, so readers
        see either the old or the new contents.

        Returns:
            Number of lines written
        """
        tmp = self.path.with_name(self.path.name + ".tmp")
        count = 0
        with self._lock:
            try:
                with open(tmp, "w", encoding="utf-8") as f:
                    for image_hash in hashes:
                        f.write(encode_hash(image_hash) + "\n")
                        count += 1
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise
        logger.info(f"Rewrote {self.path} with {count} hashes")
        return count


def load_store(log: HashLog, threshold: int, expected_shape: Optional[Tuple[int, int]] = None) -> HashStore:
    """Build a fresh :class:`HashStore` from the contents of ``log``."""
    store = HashStore(threshold=threshold)
    for image_hash in log.load(expected_shape):
        store.add(image_hash)
    return store
