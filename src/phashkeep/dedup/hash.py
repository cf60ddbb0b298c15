"""Perceptual hash computation and the text encoding used by the hash log."""

import base64
import binascii
import math
from pathlib import Path
from typing import Callable, Dict

import imagehash
import numpy as np
from PIL import Image, ImageOps

from ..logging import get_logger

logger = get_logger(__name__)

DEFAULT_HASH_ALGORITHM = "phash"
DEFAULT_HASH_SIZE = 16
MIN_HASH_SIZE = 4

_ALGORITHMS: Dict[str, Callable[..., imagehash.ImageHash]] = {
    "phash": imagehash.phash,
    "dhash": imagehash.dhash,
    "average_hash": imagehash.average_hash,
    "whash": imagehash.whash,
}

HASH_ALGORITHMS = tuple(sorted(_ALGORITHMS))


class HasherConfigError(ValueError):
    """Raised when a hasher cannot be built from the requested settings."""


class HashComputationError(Exception):
    """Raised when an image cannot be decoded or hashed."""


class MalformedHashError(ValueError):
    """Raised when a text-encoded hash cannot be decoded."""


class Hasher:
    """
    Computes fixed-size perceptual hashes with one algorithm and size.

    A hasher is built once per run and handed to every worker; it holds no
    mutable state, so sharing it across threads is safe.
    """

    def __init__(self, algorithm: str = DEFAULT_HASH_ALGORITHM, hash_size: int = DEFAULT_HASH_SIZE):
        if algorithm not in _ALGORITHMS:
            raise HasherConfigError(
                f"Unknown hash algorithm {algorithm!r}, expected one of {', '.join(HASH_ALGORITHMS)}"
            )
        if hash_size < MIN_HASH_SIZE:
            raise HasherConfigError(f"Hash size must be at least {MIN_HASH_SIZE}, got {hash_size}")
        if algorithm == "whash" and hash_size & (hash_size - 1):
            raise HasherConfigError(f"whash requires a power-of-two hash size, got {hash_size}")
        self.algorithm = algorithm
        self.hash_size = hash_size
        self._fn = _ALGORITHMS[algorithm]

    def __repr__(self) -> str:
        return f"Hasher(algorithm={self.algorithm!r}, hash_size={self.hash_size})"

    @property
    def shape(self) -> tuple:
        return (self.hash_size, self.hash_size)

    def hash_image(self, image: Image.Image) -> imagehash.ImageHash:
        return self._fn(image, hash_size=self.hash_size)

    def hash_path(self, image_path: Path) -> imagehash.ImageHash:
        """
        Decode an image from disk and hash it.

        Raises:
            HashComputationError: If the file cannot be read, decoded or hashed
        """
        try:
            with Image.open(image_path) as img:
                img = ImageOps.exif_transpose(img)
                # Convert to RGB if needed for consistent hashing
                if img.mode != 'RGB':
                    img = img.convert('RGB')
                image_hash = self.hash_image(img)
        except Exception as exc:
            raise HashComputationError(f"Failed to compute hash for {image_path}: {exc}") from exc

        logger.debug(f"Computed {self.algorithm} for {image_path}: {image_hash}")
        return image_hash


def encode_hash(image_hash: imagehash.ImageHash) -> str:
    """Encode a hash as base64 over its row-major packed bits."""
    bits = np.asarray(image_hash.hash, dtype=bool).flatten()
    return base64.b64encode(np.packbits(bits).tobytes()).decode("ascii")


def decode_hash(text: str) -> imagehash.ImageHash:
    """
    Decode the output of :func:`encode_hash`.

    The side length is recovered from the byte count: for sides of at least
    ``MIN_HASH_SIZE`` exactly one square fits in the final padded byte.

    Raises:
        MalformedHashError: If ``text`` is not a valid encoding
    """
    text = text.strip()
    if not text:
        raise MalformedHashError("empty hash")
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedHashError(f"invalid base64 {text!r}: {exc}") from exc

    bits = np.unpackbits(np.frombuffer(raw, dtype=np.uint8))
    side = math.isqrt(len(bits))
    padding = len(bits) - side * side
    if side < MIN_HASH_SIZE or padding >= 8 or bits[side * side:].any():
        raise MalformedHashError(f"{text!r} does not encode a square bit matrix")

    return imagehash.ImageHash(bits[: side * side].astype(bool).reshape(side, side))
