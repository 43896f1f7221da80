"""Sequential and concurrent dispatch of the type extractor over artifacts."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from schemaweld.config import WeldConfig
from schemaweld.errors import ExtractionError
from schemaweld.extractor import SuffixDispatchExtractor, TypeExtractor
from schemaweld.logging import get_logger
from schemaweld.models import ExtractionFailure, Fragment, SourceArtifact

logger = get_logger("pool")

ProgressCallback = Callable[[int, int, Path], None]


@dataclass(frozen=True)
class ExtractionResult:
    path: Path
    fragment: Fragment | None = None
    error: ExtractionError | None = None

    @property
    def ok(self) -> bool:
        return self.fragment is not None

    def to_failure(self) -> ExtractionFailure:
        message = self.error.message if self.error else "unknown extraction failure"
        return ExtractionFailure(path=self.path, message=message)


def all_failed(results: Sequence[ExtractionResult]) -> bool:
    return bool(results) and not any(result.ok for result in results)


class ExtractionPool:
    """Runs the extractor once per artifact and captures per-artifact failures.

    A failing artifact never aborts the batch. Results always come back
    sorted by path, whatever order the concurrent tasks finished in.
    """

    def __init__(
        self,
        config: WeldConfig,
        extractor: TypeExtractor | None = None,
        max_workers: int | None = None,
    ):
        self.config = config
        self.extractor = extractor or SuffixDispatchExtractor()
        self.max_workers = max_workers or config.max_workers or os.cpu_count() or 1

    def _extract_one(self, artifact: SourceArtifact) -> ExtractionResult:
        try:
            fragment = self.extractor.extract(artifact, self.config)
        except ExtractionError as exc:
            exc.path = exc.path or artifact.path
            return ExtractionResult(path=artifact.path, error=exc)
        except (Exception, SystemExit) as exc:
            error = ExtractionError(f"Failed to process {artifact.path}: {exc}", path=artifact.path)
            error.__cause__ = exc
            return ExtractionResult(path=artifact.path, error=error)
        return ExtractionResult(path=artifact.path, fragment=fragment)

    async def process(
        self,
        artifacts: Sequence[SourceArtifact],
        concurrent: bool = True,
        progress: ProgressCallback | None = None,
    ) -> list[ExtractionResult]:
        ordered = sorted(artifacts, key=lambda artifact: str(artifact.path))
        total = len(ordered)
        results: list[ExtractionResult] = []

        if concurrent:
            loop = asyncio.get_running_loop()
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="schemaweld") as executor:
                tasks = [loop.run_in_executor(executor, self._extract_one, artifact) for artifact in ordered]
                for next_done in asyncio.as_completed(tasks):
                    result = await next_done
                    results.append(result)
                    self._report(result, len(results), total, progress)
        else:
            for artifact in ordered:
                result = await asyncio.to_thread(self._extract_one, artifact)
                results.append(result)
                self._report(result, len(results), total, progress)

        # Completion order is arbitrary under concurrency.
        return sorted(results, key=lambda result: str(result.path))

    @staticmethod
    def _report(
        result: ExtractionResult,
        done: int,
        total: int,
        progress: ProgressCallback | None,
    ) -> None:
        if result.error is not None:
            logger.warning("extraction failed for %s: %s", result.path, result.error.message)
        else:
            logger.debug("extracted %s", result.path)
        if progress:
            progress(done, total, result.path)
