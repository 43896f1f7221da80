from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from conftest import user_definition, write_schema_file
from schemaweld import orchestrator as orchestrator_module
from schemaweld.cache import ContentCache
from schemaweld.config import WeldConfig
from schemaweld.errors import DiscoveryError, DuplicateSymbolError, ExtractionError
from schemaweld.models import RunState
from schemaweld.orchestrator import Orchestrator, run_consolidation
from schemaweld.renderer import render_schema


def test_run_given_unsorted_symbols_when_consolidated_then_definitions_follow_sort_contract(weld_config) -> None:
    # Given
    orchestrator = Orchestrator(weld_config)

    # When
    report = asyncio.run(orchestrator.run())

    # Then
    assert orchestrator.state is RunState.DONE
    assert report.consolidated is not None
    assert report.consolidated.symbols() == ["Apple", "Middle", "Zebra"]
    assert report.failures == []


def test_run_given_sequential_and_parallel_modes_when_rendered_then_output_is_byte_identical(weld_config) -> None:
    # Given
    sequential_config = weld_config.model_copy(update={"parallel_enabled": False})
    parallel_config = weld_config.model_copy(update={"parallel_enabled": True, "max_workers": 3})

    # When
    outputs = {
        render_schema(run_consolidation(config).consolidated)
        for config in (sequential_config, parallel_config, sequential_config, parallel_config)
    }

    # Then
    assert len(outputs) == 1


def test_run_given_cache_enabled_when_rerun_then_records_and_output_are_idempotent(weld_config) -> None:
    # Given
    config = weld_config.model_copy(update={"cache_enabled": True})
    uncached = render_schema(run_consolidation(weld_config).consolidated)

    # When
    first = run_consolidation(config)
    first_records = (config.cache_path / "file-hashes.json").read_text(encoding="utf-8")
    second = run_consolidation(config)
    second_records = (config.cache_path / "file-hashes.json").read_text(encoding="utf-8")

    # Then
    assert first.reused == []
    assert len(first.changed) == 3
    assert second.changed == []
    assert sorted(second.reused) == sorted(second.artifacts)
    assert first_records == second_records
    assert render_schema(first.consolidated) == render_schema(second.consolidated) == uncached


def test_run_given_edited_artifact_with_cache_when_rerun_then_only_it_is_reextracted(weld_config, schema_root) -> None:
    # Given
    config = weld_config.model_copy(update={"cache_enabled": True})
    run_consolidation(config)
    apple = (schema_root / "apple.schema.json").resolve()
    old_hash = json.loads((config.cache_path / "file-hashes.json").read_text(encoding="utf-8"))[str(apple)]
    write_schema_file(apple, {"Apple": {"type": "integer"}})

    # When
    report = run_consolidation(config)
    new_hash = json.loads((config.cache_path / "file-hashes.json").read_text(encoding="utf-8"))[str(apple)]

    # Then
    assert report.changed == [apple]
    assert apple not in report.reused
    assert len(report.reused) == 2
    assert report.consolidated.definitions["Apple"] == {"type": "integer"}
    assert new_hash != old_hash


def test_run_given_one_malformed_artifact_when_consolidated_then_run_succeeds_with_one_failure(
    weld_config,
    schema_root,
) -> None:
    # Given
    (schema_root / "broken.schema.json").write_text("{not json", encoding="utf-8")

    # When
    report = run_consolidation(weld_config)

    # Then
    assert report.state is RunState.DONE
    assert report.consolidated.symbols() == ["Apple", "Middle", "Zebra"]
    assert len(report.failures) == 1
    assert report.failures[0].path.name == "broken.schema.json"


def test_run_given_two_valid_and_one_malformed_when_consolidated_then_valid_ones_contribute(tmp_path) -> None:
    # Given
    root = tmp_path / "types"
    write_schema_file(root / "a.schema.json", {"Alpha": {"type": "string"}})
    write_schema_file(root / "b.schema.json", {"Beta": {"type": "string"}})
    (root / "c.schema.json").write_text("[]", encoding="utf-8")
    config = WeldConfig(root_path=root, pattern="*.schema.json")

    # When
    report = run_consolidation(config)

    # Then
    assert report.consolidated.symbols() == ["Alpha", "Beta"]
    assert [failure.path.name for failure in report.failures] == ["c.schema.json"]


def test_run_given_all_artifacts_malformed_when_consolidated_then_run_fails(tmp_path) -> None:
    # Given
    root = tmp_path / "types"
    root.mkdir()
    for name in ("a", "b", "c"):
        (root / f"{name}.schema.json").write_text("{oops", encoding="utf-8")
    orchestrator = Orchestrator(WeldConfig(root_path=root))

    # When
    with pytest.raises(ExtractionError, match="All 3 artifact"):
        asyncio.run(orchestrator.run())

    # Then
    assert orchestrator.state is RunState.FAILED
    assert len(orchestrator.report.failures) == 3


def test_run_given_no_matching_files_when_consolidated_then_discovery_fails(tmp_path) -> None:
    # Given
    orchestrator = Orchestrator(WeldConfig(root_path=tmp_path))

    # When
    with pytest.raises(DiscoveryError):
        asyncio.run(orchestrator.run())

    # Then
    assert orchestrator.state is RunState.FAILED


def test_run_given_conflicting_duplicate_when_consolidated_then_fails_naming_symbol_and_paths(tmp_path) -> None:
    # Given
    root = tmp_path / "types"
    user = write_schema_file(root / "user.schema.json", {"IUser": user_definition("id", "name")})
    admin = write_schema_file(root / "admin.schema.json", {"IUser": user_definition("id")})
    orchestrator = Orchestrator(WeldConfig(root_path=root))

    # When
    with pytest.raises(DuplicateSymbolError) as excinfo:
        asyncio.run(orchestrator.run())

    # Then
    assert orchestrator.state is RunState.FAILED
    assert excinfo.value.symbol == "IUser"
    assert {excinfo.value.existing_path, excinfo.value.new_path} == {user.resolve(), admin.resolve()}


def test_run_given_identical_duplicate_when_consolidated_then_single_entry_is_emitted(tmp_path) -> None:
    # Given
    root = tmp_path / "types"
    write_schema_file(root / "user.schema.json", {"IUser": user_definition()})
    write_schema_file(root / "admin.schema.json", {"IUser": user_definition(), "IAdmin": {"type": "object"}})

    # When
    report = run_consolidation(WeldConfig(root_path=root))

    # Then
    assert report.consolidated.symbols() == ["IAdmin", "IUser"]


def test_run_given_finished_orchestrator_when_rerun_then_fresh_report_starts_from_idle(weld_config) -> None:
    # Given
    orchestrator = Orchestrator(weld_config)
    first = asyncio.run(orchestrator.run())
    seen_states: list[RunState] = []
    original = orchestrator._transition

    def recording_transition(state: RunState) -> None:
        seen_states.append(orchestrator.report.state)
        original(state)

    orchestrator._transition = recording_transition

    # When
    second = asyncio.run(orchestrator.run())

    # Then
    assert second is not first
    assert seen_states[0] is RunState.IDLE
    assert orchestrator.state is RunState.DONE


def test_run_given_unreadable_artifact_hash_when_cached_then_it_is_a_miss_and_run_completes(
    weld_config,
    schema_root,
    monkeypatch,
) -> None:
    # Given
    config = weld_config.model_copy(update={"cache_enabled": True})
    apple = (schema_root / "apple.schema.json").resolve()
    real_hash = ContentCache.hash

    def flaky_hash(path):
        if Path(path).name == apple.name:
            raise PermissionError(13, "Permission denied", str(path))
        return real_hash(path)

    monkeypatch.setattr(ContentCache, "hash", staticmethod(flaky_hash))

    # When
    report = run_consolidation(config)
    records = json.loads((config.cache_path / "file-hashes.json").read_text(encoding="utf-8"))

    # Then
    assert report.state is RunState.DONE
    assert report.consolidated.symbols() == ["Apple", "Middle", "Zebra"]
    assert apple in report.changed
    assert apple not in report.reused
    assert str(apple) not in records
    assert len(records) == 2


def test_run_given_unexpected_exception_when_run_then_state_is_failed_and_error_propagates(
    weld_config,
    monkeypatch,
) -> None:
    # Given
    def broken_to_artifacts(paths):
        raise RuntimeError("stat failed")

    monkeypatch.setattr(orchestrator_module, "to_artifacts", broken_to_artifacts)
    orchestrator = Orchestrator(weld_config)

    # When
    with pytest.raises(RuntimeError, match="stat failed"):
        asyncio.run(orchestrator.run())

    # Then
    assert orchestrator.state is RunState.FAILED


@pytest.mark.parametrize("parallel", [False, True])
def test_run_given_module_calling_sys_exit_when_consolidated_then_only_that_artifact_fails(tmp_path, parallel) -> None:
    # Given
    root = tmp_path / "models"
    root.mkdir()
    (root / "a.py").write_text(
        "from pydantic import BaseModel\n\n\nclass Account(BaseModel):\n    id: str\n",
        encoding="utf-8",
    )
    (root / "b.py").write_text("import sys\n\nsys.exit(2)\n", encoding="utf-8")
    config = WeldConfig(root_path=root, pattern="*.py", parallel_enabled=parallel)

    # When
    report = run_consolidation(config)

    # Then
    assert report.state is RunState.DONE
    assert report.consolidated.symbols() == ["Account"]
    assert [failure.path.name for failure in report.failures] == ["b.py"]
