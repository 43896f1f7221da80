"""Content-hash cache used to skip unchanged artifacts between runs."""

from __future__ import annotations

import asyncio
import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

from schemaweld.errors import CacheError
from schemaweld.logging import get_logger
from schemaweld.models import Fragment, SourceArtifact

logger = get_logger("cache")

HASHES_FILE = "file-hashes.json"
FRAGMENTS_FILE = "fragments.json"


def _warn(error: CacheError) -> None:
    logger.warning("%s (treated as cache miss)", error.message)


def _read_json(path: Path, operation: str) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        _warn(CacheError(f"Failed to load {path.name}: {exc}", operation=operation))
        return None


def _atomic_write_json(path: Path, payload: Any, sort_keys: bool = True) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=sort_keys)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def fragment_key(content_hash: str, policy: str) -> str:
    return f"{content_hash}:{policy}"


class ContentCache:
    """Persisted ``path -> hash`` mapping plus the fragments extracted for those hashes.

    The mapping is loaded once and persisted once per run. Every I/O failure is
    logged and degrades to a cache miss; nothing here raises to the caller.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.hashes_path = self.cache_dir / HASHES_FILE
        self.fragments_path = self.cache_dir / FRAGMENTS_FILE
        self._hashes: dict[str, str] = {}
        self._fragments: dict[str, dict[str, Any]] = {}
        self._staged: dict[str, dict[str, Any]] = {}

    def load(self) -> dict[str, str]:
        data = _read_json(self.hashes_path, operation="load")
        if isinstance(data, dict) and all(isinstance(k, str) and isinstance(v, str) for k, v in data.items()):
            self._hashes = dict(data)
        else:
            if data is not None:
                _warn(CacheError(f"Ignoring malformed cache file {self.hashes_path}", operation="load"))
            self._hashes = {}

        stored = _read_json(self.fragments_path, operation="load")
        self._fragments = {
            key: value
            for key, value in (stored.items() if isinstance(stored, dict) else ())
            if isinstance(value, dict) and isinstance(value.get("definitions"), dict)
        }
        self._staged = {}
        logger.debug("loaded %d cached hash(es) from %s", len(self._hashes), self.hashes_path)
        return dict(self._hashes)

    @staticmethod
    def hash(path: Path) -> str:
        """MD5 over the raw bytes; only used to detect edits."""
        digest = hashlib.md5(usedforsecurity=False)
        with Path(path).open("rb") as handle:
            for chunk in iter(lambda: handle.read(65536), b""):
                digest.update(chunk)
        return digest.hexdigest()

    async def _hash_or_miss(self, path: Path) -> str | None:
        try:
            return await asyncio.to_thread(self.hash, path)
        except OSError as exc:
            _warn(CacheError(f"Failed to hash {path}: {exc}", operation="hash"))
            return None

    async def hash_all(self, paths: Iterable[Path]) -> dict[str, str]:
        """Hash independent artifacts concurrently, returning a path-sorted mapping.

        Paths that cannot be read are left out, so they count as cache misses.
        """
        ordered = sorted(paths, key=str)
        digests = await asyncio.gather(*(self._hash_or_miss(path) for path in ordered))
        return {str(path): digest for path, digest in zip(ordered, digests) if digest is not None}

    def has_changed(self, path: Path | str, content_hash: str) -> bool:
        return self._hashes.get(str(path)) != content_hash

    def cached_fragment(self, artifact: SourceArtifact, policy: str) -> Fragment | None:
        """Return the stored fragment for an unchanged artifact, if any."""
        if artifact.content_hash is None or self.has_changed(artifact.path, artifact.content_hash):
            return None
        key = fragment_key(artifact.content_hash, policy)
        stored = self._fragments.get(key)
        if stored is None:
            return None
        self._staged[key] = stored
        return Fragment(source=artifact, definitions=stored["definitions"], dialect=stored.get("dialect"))

    def remember(self, fragment: Fragment, policy: str) -> None:
        if fragment.source.content_hash is None:
            return
        self._staged[fragment_key(fragment.source.content_hash, policy)] = {
            "dialect": fragment.dialect,
            "definitions": fragment.definitions,
        }

    def persist(self, records: dict[str, str]) -> None:
        """Rewrite the whole cache once, after every hash for the run is known.

        Only fragments touched during this run are kept, so entries for
        deleted or edited artifacts fall out.
        """
        try:
            _atomic_write_json(self.hashes_path, dict(sorted(records.items())))
            # Node key order is part of the output bytes; keep it as extracted.
            _atomic_write_json(self.fragments_path, dict(sorted(self._staged.items())), sort_keys=False)
        except OSError as exc:
            _warn(CacheError(f"Failed to persist cache to {self.cache_dir}: {exc}", operation="persist"))
            return
        self._hashes = dict(records)
        self._fragments = dict(self._staged)
        logger.debug("persisted %d hash(es) to %s", len(records), self.hashes_path)

    def clear(self) -> None:
        self._hashes.clear()
        self._fragments.clear()
        self._staged.clear()
        for path in (self.hashes_path, self.fragments_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                _warn(CacheError(f"Failed to remove {path}: {exc}", operation="clear"))
