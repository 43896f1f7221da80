from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from schemaweld.config import WeldConfig
from schemaweld.models import Fragment, SourceArtifact

DRAFT_07 = "http://json-schema.org/draft-07/schema#"


def user_definition(*required: str) -> dict[str, object]:
    return {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "name": {"type": "string"},
            "age": {"type": "number"},
        },
        "required": list(required or ("id", "name")),
        "additionalProperties": False,
    }


def write_schema_file(path: Path, definitions: dict[str, object], dialect: str | None = DRAFT_07) -> Path:
    document: dict[str, object] = {"definitions": definitions}
    if dialect is not None:
        document["$schema"] = dialect
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def schema_root(tmp_path) -> Path:
    root = tmp_path / "types"
    write_schema_file(root / "zoo" / "zebra.schema.json", {"Zebra": {"type": "object", "properties": {}}})
    write_schema_file(root / "apple.schema.json", {"Apple": {"type": "string"}})
    write_schema_file(root / "middle.schema.json", {"Middle": {"type": "number"}})
    return root


@pytest.fixture
def weld_config(schema_root, tmp_path) -> WeldConfig:
    return WeldConfig(
        pattern="*.schema.json",
        root_path=schema_root,
        output_path=tmp_path / "out",
        cache_path=tmp_path / "cache",
        additional_properties=True,
    )


@pytest.fixture
def make_fragment():
    def _make(path: str, definitions: dict[str, object], dialect: str | None = None) -> Fragment:
        return Fragment(
            source=SourceArtifact(path=Path(path)),
            definitions=definitions,
            dialect=dialect,
        )

    return _make
