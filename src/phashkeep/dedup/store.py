"""Shared in-memory index of admitted perceptual hashes."""

import itertools
import threading
from typing import Dict, Iterator, List, Optional

import imagehash

from .distance import DEFAULT_THRESHOLD, hamming_distance
from ..logging import get_logger

logger = get_logger(__name__)


class Reservation:
    """
    A hash that passed the duplicate scan and is being admitted.

    While a reservation is open, other candidates within threshold of it wait
    rather than being admitted or rejected. It must end in exactly one of
    :meth:`commit` or :meth:`release`.
    """

    def __init__(self, store: "HashStore", token: int, image_hash: imagehash.ImageHash):
        self._store = store
        self._token = token
        self.hash = image_hash
        self.closed = False

    def commit(self) -> None:
        self._store._close(self, keep=True)

    def release(self) -> None:
        self._store._close(self, keep=False)


class HashStore:
    """
    Set of perceptual hashes in which no two entries are duplicates.

    Admission goes through :meth:`reserve`, which scans and inserts under one
    lock. Committed entries are never removed. Hashes loaded from the log via
    :meth:`add` bypass the check, since a rebuilt log may hold near-duplicate
    outputs.
    """

    def __init__(self, threshold: int = DEFAULT_THRESHOLD):
        self.threshold = threshold
        self._hashes: List[imagehash.ImageHash] = []
        self._pending: Dict[int, imagehash.ImageHash] = {}
        self._tokens = itertools.count()
        self._cond = threading.Condition()

    def __len__(self) -> int:
        with self._cond:
            return len(self._hashes)

    def __iter__(self) -> Iterator[imagehash.ImageHash]:
        with self._cond:
            return iter(list(self._hashes))

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._pending)

    def add(self, image_hash: imagehash.ImageHash) -> None:
        with self._cond:
            self._hashes.append(image_hash)

    def find_match(self, image_hash: imagehash.ImageHash) -> Optional[imagehash.ImageHash]:
        """Return a committed hash within threshold of ``image_hash``, if any."""
        with self._cond:
            return self._scan(image_hash)

    def reserve(self, image_hash: imagehash.ImageHash) -> Optional[Reservation]:
        """
        Atomically check ``image_hash`` against the store and claim it.

        Returns:
            ``None`` if a committed hash is within threshold, otherwise an
            open :class:`Reservation`. Blocks while a near-duplicate
            reservation from another admission is still open.
        """
        with self._cond:
            while True:
                if self._scan(image_hash) is not None:
                    return None
                if not self._pending_conflict(image_hash):
                    token = next(self._tokens)
                    self._pending[token] = image_hash
                    return Reservation(self, token, image_hash)
                logger.debug(f"Waiting on in-flight near-duplicate of {image_hash}")
                self._cond.wait()

    def _scan(self, image_hash: imagehash.ImageHash) -> Optional[imagehash.ImageHash]:
        for stored in self._hashes:
            if hamming_distance(image_hash, stored) < self.threshold:
                return stored
        return None

    def _pending_conflict(self, image_hash: imagehash.ImageHash) -> bool:
        return any(
            hamming_distance(image_hash, pending) < self.threshold
            for pending in self._pending.values()
        )

    def _close(self, reservation: Reservation, keep: bool) -> None:
        with self._cond:
            if reservation.closed:
                raise RuntimeError("reservation already committed or released")
            reservation.closed = True
            del self._pending[reservation._token]
            if keep:
                self._hashes.append(reservation.hash)
            self._cond.notify_all()
