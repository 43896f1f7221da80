"""Artifact discovery under a root directory."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

from schemaweld.errors import DiscoveryError
from schemaweld.logging import get_logger
from schemaweld.models import SourceArtifact

logger = get_logger("locator")


def _check_readable_root(root: Path) -> None:
    if not root.exists():
        raise DiscoveryError(f"Root path does not exist: {root}", path=root)
    if not root.is_dir():
        raise DiscoveryError(f"Root path is not a directory: {root}", path=root)
    try:
        with os.scandir(root) as entries:
            next(entries, None)
    except OSError as exc:
        raise DiscoveryError(f"Root path is not readable: {root} ({exc})", path=root) from exc


def discover(pattern: str, root: Path) -> list[Path]:
    """Return every regular file under ``root`` matching ``pattern``.

    A pattern without a directory separator matches at any depth. Results are
    absolute, resolved, and sorted ordinally by their string form.

    Raises:
        DiscoveryError: If the root is missing or unreadable, the pattern is
            absolute, or nothing matches.
    """
    root = Path(root).expanduser().resolve()
    _check_readable_root(root)
    if Path(pattern).is_absolute():
        raise DiscoveryError(f"Pattern must be relative to the root: {pattern}", path=root)

    matcher = root.glob if "/" in pattern else root.rglob
    try:
        found = {path.resolve() for path in matcher(pattern) if path.is_file()}
    except (OSError, ValueError, NotImplementedError) as exc:
        raise DiscoveryError(f"Failed to discover files: {exc}", path=root) from exc

    if not found:
        raise DiscoveryError(f"No files found matching pattern: {pattern} in {root}", path=root)

    paths = sorted(found, key=str)
    logger.debug("discovered %d artifact(s) under %s", len(paths), root)
    return paths


def to_artifacts(paths: list[Path]) -> list[SourceArtifact]:
    artifacts = []
    for path in sorted(paths, key=str):
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        artifacts.append(SourceArtifact(path=path, last_modified=mtime))
    return artifacts
