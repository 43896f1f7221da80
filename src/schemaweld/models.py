"""Pydantic models shared across discovery, extraction, and consolidation layers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DIALECT = "http://json-schema.org/draft-07/schema#"

# JSON-like tree: dict / list / str / int / float / bool / None.
SchemaNode = Any


class SourceArtifact(BaseModel):
    """One discovered source file considered for schema extraction."""

    model_config = ConfigDict(frozen=True)

    path: Path
    content_hash: str | None = None
    last_modified: datetime | None = None


class Fragment(BaseModel):
    """Schema definitions extracted from exactly one artifact."""

    model_config = ConfigDict(frozen=True)

    source: SourceArtifact
    definitions: dict[str, SchemaNode] = Field(default_factory=dict)
    dialect: str | None = None

    @property
    def path(self) -> Path:
        return self.source.path


class ExtractionFailure(BaseModel):
    """Report entry for an artifact dropped from the run."""

    path: Path
    message: str


class ConsolidatedSchema(BaseModel):
    """Deduplicated, symbol-sorted union of all fragments."""

    dialect: str = DEFAULT_DIALECT
    definitions: dict[str, SchemaNode] = Field(default_factory=dict)

    def symbols(self) -> list[str]:
        return list(self.definitions)

    def to_document(self) -> dict[str, Any]:
        return {"$schema": self.dialect, "definitions": self.definitions}


class RunState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


class RunReport(BaseModel):
    """Outcome of one consolidation run."""

    state: RunState = RunState.IDLE
    artifacts: list[Path] = Field(default_factory=list)
    consolidated: ConsolidatedSchema | None = None
    failures: list[ExtractionFailure] = Field(default_factory=list)
    changed: list[Path] = Field(default_factory=list)
    reused: list[Path] = Field(default_factory=list)
