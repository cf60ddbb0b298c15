from pathlib import Path
from typing import Optional

import typer

from .config import ConfigError, Settings
from .convert.pipeline import ConversionPipeline, RunContext, StartupError
from .dedup.distance import DEFAULT_THRESHOLD
from .dedup.hash import DEFAULT_HASH_ALGORITHM, DEFAULT_HASH_SIZE, Hasher, HasherConfigError
from .discovery import find_images
from .logging import get_logger
from .rebuild import rebuild as rebuild_log

app = typer.Typer(help="phashkeep – perceptual dedup and AVIF conversion of image trees", no_args_is_help=True)


@app.command()
def convert(
    source_dir: Optional[Path] = typer.Option(None, "--source-dir", "-s", help="Directory to search for images"),
    output_dir: Path = typer.Option(Path("output"), "--output-dir", "-o", help="Directory for AVIF files and the hash log"),
    speed: int = typer.Option(6, help="AVIF encoder speed, 0 (slow) to 10 (fast)"),
    quality: int = typer.Option(85, "--quality", "-q", help="AVIF encoder quality, 0 to 100"),
    workers: int = typer.Option(0, "--workers", "-j", help="Worker threads (0 = one per CPU)"),
    threshold: int = typer.Option(DEFAULT_THRESHOLD, help="Hashes closer than this many bits are duplicates"),
    hash_algorithm: str = typer.Option(DEFAULT_HASH_ALGORITHM, help="phash, dhash, average_hash or whash"),
    hash_size: int = typer.Option(DEFAULT_HASH_SIZE, help="Hash side length in bits"),
    rebuild: bool = typer.Option(False, "--rebuild", help="Rebuild the hash log from the output directory and exit"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show a progress bar"),
) -> None:
    """
    Convert every image under SOURCE_DIR that is not a near-duplicate of one
    already converted into OUTPUT_DIR.

    Admitted hashes are appended to OUTPUT_DIR/hashes, so later runs skip
    images seen before. With --rebuild, the hash log is instead recomputed
    from the AVIF files already in OUTPUT_DIR.
    """
    logger = get_logger(__name__)

    settings = Settings(
        source_dir=source_dir,
        output_dir=output_dir,
        speed=speed,
        quality=quality,
        workers=workers,
        threshold=threshold,
        hash_algorithm=hash_algorithm,
        hash_size=hash_size,
        rebuild=rebuild,
        progress=progress,
    )
    try:
        settings.validate()
    except ConfigError as exc:
        logger.error(f"Invalid configuration: {exc}")
        raise typer.Exit(code=2) from exc

    if settings.rebuild:
        try:
            hasher = Hasher(settings.hash_algorithm, settings.hash_size)
            summary = rebuild_log(settings.output_dir, hasher, workers=settings.worker_count, progress=settings.progress)
        except (HasherConfigError, StartupError, OSError) as exc:
            logger.error(f"Rebuild failed: {exc}")
            raise typer.Exit(code=1) from exc
        typer.echo(f"Rebuilt {summary.log_path}: {summary.hashed} hashes, {summary.skipped} unreadable files skipped")
        return

    try:
        context = RunContext.open(settings)
    except StartupError as exc:
        logger.error(f"Cannot start: {exc}")
        raise typer.Exit(code=1) from exc

    images = find_images(settings.source_dir, exclude=[settings.output_dir])
    logger.info(f"Processing {len(images)} images from {settings.source_dir} with {settings.worker_count} workers")

    pipeline = ConversionPipeline(context)
    summary = pipeline.run(images, workers=settings.worker_count, progress=settings.progress)

    typer.echo(f"Processing complete: {summary.total} images")
    typer.echo(f"  admitted:   {summary.admitted}")
    typer.echo(f"  duplicates: {summary.rejected}")
    typer.echo(f"  failed:     {summary.failed}")
    for path, reason in summary.failures:
        typer.echo(f"    {path}: {reason}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
