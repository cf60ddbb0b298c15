"""Perceptual deduplication engine: hashing, the shared store and its log."""

from .admission import Admitted, AdmitResult, Failed, Rejected, admit
from .distance import DEFAULT_THRESHOLD, hamming_distance, is_duplicate
from .hash import (
    HashComputationError,
    Hasher,
    HasherConfigError,
    MalformedHashError,
    decode_hash,
    encode_hash,
)
from .log import LOG_FILE_NAME, HashLog, load_store
from .store import HashStore, Reservation

__all__ = [
    "admit",
    "AdmitResult",
    "Admitted",
    "Rejected",
    "Failed",
    "DEFAULT_THRESHOLD",
    "hamming_distance",
    "is_duplicate",
    "Hasher",
    "HasherConfigError",
    "HashComputationError",
    "MalformedHashError",
    "encode_hash",
    "decode_hash",
    "HashLog",
    "LOG_FILE_NAME",
    "load_store",
    "HashStore",
    "Reservation",
]
