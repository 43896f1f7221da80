"""Typer-based CLI for consolidating type schemas into one canonical document."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from schemaweld.config import DEFAULT_CACHE_PATH, DEFAULT_OUTPUT_PATH, DEFAULT_PATTERN, WeldConfig, build_config
from schemaweld.errors import SchemaWeldError, format_error
from schemaweld.logging import configure_logging
from schemaweld.models import RunReport
from schemaweld.orchestrator import Orchestrator, run_consolidation
from schemaweld.renderer import clean_output_dir, render_outputs

app = typer.Typer(add_completion=False, help="schemaweld: merge per-file type schemas into one canonical schema")


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _echo_extraction_progress(done: int, total: int, path: Path) -> None:
    """Print incremental extraction progress from the pool callback."""
    percent = int((done / total) * 100) if total else 100
    typer.echo(f"    extracting... {done}/{total} ({percent}%) {path.name}")


def _load_config(**values: Any) -> WeldConfig:
    try:
        return build_config(**values)
    except SchemaWeldError as exc:
        raise typer.BadParameter(format_error(exc)) from exc


def _consolidate(config: WeldConfig) -> RunReport:
    """Run the pipeline, printing fatal errors in taxonomy form before exiting."""
    try:
        report = run_consolidation(config, progress=_echo_extraction_progress if config.verbose else None)
    except SchemaWeldError as exc:
        typer.echo(format_error(exc, verbose=config.verbose), err=True)
        raise typer.Exit(code=1) from exc

    for failure in report.failures:
        typer.echo(f"    skipped {failure.path}: {failure.message}", err=True)
    return report


@app.command("generate")
def generate(
    pattern: str = typer.Argument(DEFAULT_PATTERN, help="Glob of source files relative to the root"),
    root_path: Path = typer.Option(Path("."), "--root", help="Directory to search for source files"),
    output_path: Path = typer.Option(DEFAULT_OUTPUT_PATH, "--output", help="Output directory"),
    cache: bool = typer.Option(False, "--cache/--no-cache", help="Skip unchanged files using a content-hash cache"),
    cache_path: Path = typer.Option(DEFAULT_CACHE_PATH, "--cache-path", help="Cache directory"),
    parallel: bool = typer.Option(True, "--parallel/--sequential", help="Extract files concurrently"),
    max_workers: int | None = typer.Option(None, "--max-workers", help="Worker threads for parallel extraction"),
    additional_properties: bool = typer.Option(
        False, "--additional-properties", help="Allow properties not declared on object types"
    ),
    minify: bool = typer.Option(False, help="Write compact JSON"),
    helpers: bool = typer.Option(True, "--helpers/--no-helpers", help="Write the schema_definition.py symbol index"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and detailed error output"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Also write logs to this file"),
) -> None:
    """Consolidate matching source files and write the canonical schema."""
    _echo_step(1, 3, "Loading configuration")
    config = _load_config(
        pattern=pattern,
        root_path=root_path,
        output_path=output_path,
        cache_enabled=cache,
        cache_path=cache_path,
        parallel_enabled=parallel,
        max_workers=max_workers,
        additional_properties=additional_properties,
        minify=minify,
        helpers=helpers,
        verbose=verbose,
    )
    configure_logging(verbose=verbose, log_file=log_file)

    _echo_step(2, 3, "Consolidating schemas")
    report = _consolidate(config)
    if report.consolidated is None:
        raise RuntimeError("Consolidation finished without a schema")

    _echo_step(3, 3, "Writing outputs")
    try:
        clean_output_dir(config.output_path)
        written = render_outputs(
            report.consolidated,
            config.output_path,
            minify=config.minify,
            helpers=config.helpers,
        )
    except SchemaWeldError as exc:
        typer.echo(format_error(exc, verbose=verbose), err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        "Generate complete. "
        f"files={len(report.artifacts)} symbols={len(report.consolidated.definitions)} "
        f"failed={len(report.failures)} reused={len(report.reused)} path={written[0]}"
    )


@app.command("check")
def check(
    pattern: str = typer.Argument(DEFAULT_PATTERN, help="Glob of source files relative to the root"),
    root_path: Path = typer.Option(Path("."), "--root", help="Directory to search for source files"),
    parallel: bool = typer.Option(True, "--parallel/--sequential", help="Extract files concurrently"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and detailed error output"),
) -> None:
    """Validate cross-file compatibility without writing any output."""
    config = _load_config(pattern=pattern, root_path=root_path, parallel_enabled=parallel, verbose=verbose)
    configure_logging(verbose=verbose)
    report = _consolidate(config)
    if report.consolidated is None:
        raise RuntimeError("Consolidation finished without a schema")
    typer.echo(f"Check passed. files={len(report.artifacts)} symbols={len(report.consolidated.definitions)}")


@app.command("clear-cache")
def clear_cache(
    cache_path: Path = typer.Option(DEFAULT_CACHE_PATH, "--cache-path", help="Cache directory"),
) -> None:
    """Delete the persisted content-hash cache."""
    Orchestrator(_load_config(cache_path=cache_path)).clear_cache()
    typer.echo(f"Cache cleared: {cache_path}")


if __name__ == "__main__":
    app()
