import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .dedup.distance import DEFAULT_THRESHOLD
from .dedup.hash import DEFAULT_HASH_ALGORITHM, DEFAULT_HASH_SIZE


class ConfigError(ValueError):
    """Raised when run settings are invalid."""


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class Settings:
    source_dir: Optional[Path] = None
    output_dir: Path = Path("output")
    speed: int = 6
    quality: int = 85
    workers: int = 0  # 0 means one worker per CPU
    threshold: int = DEFAULT_THRESHOLD
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    hash_size: int = DEFAULT_HASH_SIZE
    rebuild: bool = False
    progress: bool = True

    @property
    def worker_count(self) -> int:
        return self.workers or _default_workers()

    def validate(self) -> "Settings":
        """Check value ranges and, outside rebuild mode, the source directory."""
        if not self.rebuild:
            if self.source_dir is None:
                raise ConfigError("a source directory is required unless rebuilding")
            if not Path(self.source_dir).is_dir():
                raise ConfigError(f"source directory does not exist: {self.source_dir}")
        if not 0 <= self.speed <= 10:
            raise ConfigError(f"speed must be between 0 and 10, got {self.speed}")
        if not 0 <= self.quality <= 100:
            raise ConfigError(f"quality must be between 0 and 100, got {self.quality}")
        if self.workers < 0:
            raise ConfigError(f"workers must not be negative, got {self.workers}")
        if self.threshold < 1:
            raise ConfigError(f"threshold must be at least 1, got {self.threshold}")
        if self.hash_size < 4:
            raise ConfigError(f"hash size must be at least 4, got {self.hash_size}")
        return self
