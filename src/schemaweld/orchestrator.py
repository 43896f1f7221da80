"""Sequences discovery, caching, extraction, validation, and merge into one run."""

from __future__ import annotations

import asyncio

from schemaweld.cache import ContentCache
from schemaweld.config import WeldConfig
from schemaweld.consolidator import merge, validate_compatibility
from schemaweld.errors import ExtractionError
from schemaweld.extractor import TypeExtractor
from schemaweld.locator import discover, to_artifacts
from schemaweld.logging import get_logger
from schemaweld.models import Fragment, RunReport, RunState
from schemaweld.pool import ExtractionPool, ProgressCallback, all_failed

logger = get_logger("orchestrator")


def _policy_key(config: WeldConfig) -> str:
    return f"additionalProperties={str(config.additional_properties).lower()}"


class Orchestrator:
    """Drives one consolidation run through its state machine.

    ``IDLE -> DISCOVERING -> EXTRACTING -> VALIDATING -> MERGING -> DONE``, with
    any fatal error landing in ``FAILED``. Each call to :meth:`run` starts a
    fresh report from ``IDLE``; cache state persists across runs on disk.
    """

    def __init__(
        self,
        config: WeldConfig,
        extractor: TypeExtractor | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.config = config
        self.extractor = extractor
        self.progress = progress
        self.report = RunReport()

    @property
    def state(self) -> RunState:
        return self.report.state

    def _transition(self, state: RunState) -> None:
        logger.debug("run state %s -> %s", self.report.state.value, state.value)
        self.report.state = state

    def clear_cache(self) -> None:
        ContentCache(self.config.cache_path).clear()

    async def run(self) -> RunReport:
        self.report = RunReport()
        try:
            return await self._run()
        except Exception:
            self._transition(RunState.FAILED)
            raise

    async def _run(self) -> RunReport:
        config = self.config
        report = self.report

        self._transition(RunState.DISCOVERING)
        paths = discover(config.pattern, config.root_path)
        artifacts = to_artifacts(paths)
        report.artifacts = [artifact.path for artifact in artifacts]
        logger.info("found %d artifact(s) matching %s", len(artifacts), config.pattern)

        cache: ContentCache | None = None
        records: dict[str, str] = {}
        if config.cache_enabled:
            cache = ContentCache(config.cache_path)
            cache.load()
            records = await cache.hash_all(paths)
            artifacts = [
                artifact.model_copy(update={"content_hash": records.get(str(artifact.path))})
                for artifact in artifacts
            ]
            report.changed = [
                artifact.path
                for artifact in artifacts
                if artifact.content_hash is None or cache.has_changed(artifact.path, artifact.content_hash)
            ]

        self._transition(RunState.EXTRACTING)
        policy = _policy_key(config)
        fragments: list[Fragment] = []
        pending = []
        for artifact in artifacts:
            cached = cache.cached_fragment(artifact, policy) if cache else None
            if cached is None:
                pending.append(artifact)
            else:
                fragments.append(cached)
                report.reused.append(artifact.path)
        if report.reused:
            logger.info("reusing %d unchanged artifact(s) from cache", len(report.reused))

        pool = ExtractionPool(config, extractor=self.extractor)
        results = await pool.process(pending, concurrent=config.parallel_enabled, progress=self.progress)
        for result in results:
            if result.fragment is not None:
                fragments.append(result.fragment)
                if cache:
                    cache.remember(result.fragment, policy)
            else:
                report.failures.append(result.to_failure())

        if cache:
            cache.persist(records)

        if all_failed(results) and not report.reused:
            raise ExtractionError(
                f"All {len(results)} artifact(s) failed extraction; first failure: {report.failures[0].message}"
            )
        if report.failures:
            logger.warning(
                "%d of %d artifact(s) failed extraction and were dropped",
                len(report.failures),
                len(artifacts),
            )

        self._transition(RunState.VALIDATING)
        validate_compatibility(fragments)

        self._transition(RunState.MERGING)
        report.consolidated = merge(fragments)

        self._transition(RunState.DONE)
        logger.info("consolidated %d symbol(s)", len(report.consolidated.definitions))
        return report


def run_consolidation(
    config: WeldConfig,
    extractor: TypeExtractor | None = None,
    progress: ProgressCallback | None = None,
) -> RunReport:
    """Synchronous entry point for a single run."""
    return asyncio.run(Orchestrator(config, extractor=extractor, progress=progress).run())
