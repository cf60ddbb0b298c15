"""
Per-image conversion pipeline.

Each candidate runs admission, and an admitted candidate is committed as one
unit: encode, write the output file, append its hash to the log, then commit
the hash into the store. If any step fails the output file is removed and the
reservation released, so the hash is never recorded without its output.
"""

import tempfile
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from ..config import Settings
from ..dedup.admission import Admitted, Failed, Rejected, admit
from ..dedup.hash import Hasher, HasherConfigError
from ..dedup.log import HashLog, load_store
from ..dedup.store import HashStore
from ..logging import get_logger, package_loggers
from .encode import OUTPUT_SUFFIX, EncodeError, encode_image

logger = get_logger(__name__)

ItemStatus = Literal["admitted", "rejected", "failed"]
Encoder = Callable[[Path, int, int], bytes]


class StartupError(Exception):
    """Raised when run resources cannot be set up."""


@dataclass(frozen=True)
class ItemOutcome:
    path: Path
    status: ItemStatus
    output_path: Optional[Path] = None
    reason: Optional[str] = None


@dataclass
class RunSummary:
    total: int = 0
    admitted: int = 0
    rejected: int = 0
    failed: int = 0
    failures: List[Tuple[Path, str]] = field(default_factory=list)

    def record(self, outcome: ItemOutcome) -> None:
        self.total += 1
        if outcome.status == "admitted":
            self.admitted += 1
        elif outcome.status == "rejected":
            self.rejected += 1
        else:
            self.failed += 1
            self.failures.append((outcome.path, outcome.reason or "unknown error"))


@dataclass
class RunContext:
    """Everything a run shares between workers, built once at startup."""
    settings: Settings
    hasher: Hasher
    store: HashStore
    log: HashLog

    @property
    def output_dir(self) -> Path:
        return Path(self.settings.output_dir)

    @classmethod
    def open(cls, settings: Settings) -> "RunContext":
        """
        Prepare the output directory, hasher and store for a run.

        Raises:
            StartupError: If the output directory or the hash log cannot be
                written, or the hasher settings are invalid
        """
        output_dir = Path(settings.output_dir)
        ensure_writable_dir(output_dir)

        try:
            hasher = Hasher(settings.hash_algorithm, settings.hash_size)
        except HasherConfigError as exc:
            raise StartupError(str(exc)) from exc

        log = HashLog.in_dir(output_dir)
        try:
            log.check_appendable()
        except OSError as exc:
            raise StartupError(f"Hash log {log.path} is not writable: {exc}") from exc
        try:
            store = load_store(log, settings.threshold, expected_shape=hasher.shape)
        except OSError as exc:
            raise StartupError(f"Cannot read hash log {log.path}: {exc}") from exc

        logger.info(f"Run context ready: {hasher}, {len(store)} known hashes, output {output_dir}")
        return cls(settings=settings, hasher=hasher, store=store, log=log)


def ensure_writable_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=path):
            pass
    except OSError as exc:
        raise StartupError(f"Output directory {path} is not writable: {exc}") from exc


class ConversionPipeline:
    def __init__(self, context: RunContext, encoder: Optional[Encoder] = None):
        self.context = context
        self.encoder = encoder or encode_image

    def process(self, path: Path) -> ItemOutcome:
        """Admit and, if new, convert one candidate. Never raises for per-item errors."""
        try:
            result = admit(path, self.context.hasher, self.context.store)
        except Exception as exc:
            logger.exception(f"Unexpected error admitting {path}")
            return ItemOutcome(path, "failed", reason=str(exc))

        if isinstance(result, Rejected):
            return ItemOutcome(path, "rejected")
        if isinstance(result, Failed):
            logger.warning(f"Image {path} error: {result.reason}")
            return ItemOutcome(path, "failed", reason=result.reason)
        return self._commit(result)

    def _commit(self, admitted: Admitted) -> ItemOutcome:
        settings = self.context.settings
        output_path: Optional[Path] = None
        try:
            data = self.encoder(admitted.path, settings.speed, settings.quality)

            output_path = self.context.output_dir / f"{uuid.uuid4().hex}{OUTPUT_SUFFIX}"
            with open(output_path, "xb") as f:
                f.write(data)

            self.context.log.append(admitted.hash)
        except Exception as exc:
            if output_path is not None:
                output_path.unlink(missing_ok=True)
            admitted.reservation.release()
            if isinstance(exc, (EncodeError, OSError)):
                logger.warning(f"Image {admitted.path} error: {exc}")
            else:
                logger.exception(f"Unexpected error converting {admitted.path}")
            return ItemOutcome(admitted.path, "failed", reason=str(exc))

        admitted.reservation.commit()
        logger.debug(f"Wrote {output_path} for {admitted.path}")
        return ItemOutcome(admitted.path, "admitted", output_path=output_path)

    def run(self, paths: Sequence[Path], workers: Optional[int] = None, progress: bool = True) -> RunSummary:
        """
        Process every path on a bounded thread pool.

        Per-item failures are counted in the summary and never stop the run.
        """
        workers = workers or self.context.settings.worker_count
        summary = RunSummary()
        if not paths:
            logger.info("No candidate images to process")
            return summary

        with logging_redirect_tqdm(loggers=package_loggers()):
            with tqdm(total=len(paths), unit="img", disable=not progress) as bar:
                with ThreadPoolExecutor(max_workers=workers) as executor:
                    futures = [executor.submit(self.process, path) for path in paths]
                    for future in as_completed(futures):
                        summary.record(future.result())
                        bar.update(1)
                        bar.set_postfix(new=summary.admitted, dup=summary.rejected, err=summary.failed)

        logger.info(
            f"Processed {summary.total} images: {summary.admitted} admitted, "
            f"{summary.rejected} duplicates, {summary.failed} failed"
        )
        return summary
