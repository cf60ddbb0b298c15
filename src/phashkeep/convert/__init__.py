"""AVIF conversion of admitted images."""

from .encode import OUTPUT_SUFFIX, EncodeError, encode_image
from .pipeline import ConversionPipeline, ItemOutcome, RunContext, RunSummary, StartupError

__all__ = [
    "OUTPUT_SUFFIX",
    "EncodeError",
    "encode_image",
    "ConversionPipeline",
    "ItemOutcome",
    "RunContext",
    "RunSummary",
    "StartupError",
]
