"""Re-encoding of source images to AVIF."""

from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps

from ..logging import get_logger

logger = get_logger(__name__)

OUTPUT_FORMAT = "AVIF"
OUTPUT_SUFFIX = ".avif"


class EncodeError(Exception):
    """Raised when a source image cannot be converted."""


def _normalize_mode(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def encode_image(image_path: Path, speed: int, quality: int) -> bytes:
    """
    Convert the image at ``image_path`` to AVIF bytes.

    EXIF orientation is applied to the pixels, since AVIF output carries no
    source metadata.

    Args:
        image_path: Source image
        speed: Encoder speed, 0 (slowest) to 10 (fastest)
        quality: Encoder quality, 0 to 100

    Raises:
        EncodeError: If decoding or encoding fails
    """
    try:
        with Image.open(image_path) as img:
            img = ImageOps.exif_transpose(img)
            img = _normalize_mode(img)
            buffer = BytesIO()
            img.save(buffer, format=OUTPUT_FORMAT, quality=quality, speed=speed)
    except Exception as exc:
        raise EncodeError(f"Failed to encode {image_path}: {exc}") from exc

    data = buffer.getvalue()
    logger.debug(f"Encoded {image_path} to {len(data)} bytes (speed={speed}, quality={quality})")
    return data
