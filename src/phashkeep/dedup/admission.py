"""Compare-and-admit decision for a single candidate image."""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import imagehash

from .hash import HashComputationError, Hasher
from .store import HashStore, Reservation
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Admitted:
    """The candidate is new; its hash is reserved until committed or released."""
    path: Path
    hash: imagehash.ImageHash
    reservation: Reservation


@dataclass(frozen=True)
class Rejected:
    """A near-duplicate of the candidate is already in the store."""
    path: Path
    hash: imagehash.ImageHash
    match: imagehash.ImageHash


@dataclass(frozen=True)
class Failed:
    """The candidate could not be decoded or hashed."""
    path: Path
    reason: str


AdmitResult = Union[Admitted, Rejected, Failed]


def admit(path: Path, hasher: Hasher, store: HashStore) -> AdmitResult:
    """
    Decide whether the image at ``path`` is new.

    Decoding and hashing run outside any lock; the scan and the insert of
    the reservation are a single critical section inside the store. An
    ``Admitted`` result hands the caller an open reservation that it must
    commit or release.
    """
    try:
        image_hash = hasher.hash_path(path)
    except HashComputationError as exc:
        logger.debug(str(exc))
        return Failed(path=path, reason=str(exc.__cause__ or exc))

    reservation = store.reserve(image_hash)
    if reservation is None:
        match = store.find_match(image_hash)
        logger.debug(f"Rejected {path}: near-duplicate of {match}")
        return Rejected(path=path, hash=image_hash, match=match)

    logger.debug(f"Admitted {path} with hash {image_hash}")
    return Admitted(path=path, hash=image_hash, reservation=reservation)
