"""Distance metric for perceptual hash comparison."""

import imagehash

# Hashes closer than this many differing bits are duplicates.
DEFAULT_THRESHOLD = 10


def hamming_distance(a: imagehash.ImageHash, b: imagehash.ImageHash) -> int:
    """
    Calculate Hamming distance between two perceptual hashes.

    Args:
        a: First hash
        b: Second hash

    Returns:
        Hamming distance (number of differing bits)
    """
    return int(a - b)


def is_duplicate(a: imagehash.ImageHash, b: imagehash.ImageHash, threshold: int = DEFAULT_THRESHOLD) -> bool:
    return hamming_distance(a, b) < threshold
