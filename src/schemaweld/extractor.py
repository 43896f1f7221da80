"""Type extractors that turn one source artifact into a schema fragment."""

from __future__ import annotations

import hashlib
import importlib.util
import inspect
import json
import sys
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel

from schemaweld.config import WeldConfig
from schemaweld.errors import ExtractionError
from schemaweld.models import Fragment, SchemaNode, SourceArtifact

PYDANTIC_DIALECT = "https://json-schema.org/draft/2020-12/schema"
REF_TEMPLATE = "#/definitions/{model}"


class TypeExtractor(Protocol):
    def extract(self, artifact: SourceArtifact, config: WeldConfig) -> Fragment: ...


_SCHEMA_MAP_KEYWORDS = frozenset({"properties", "patternProperties", "$defs", "definitions", "dependentSchemas"})
_SCHEMA_LIST_KEYWORDS = frozenset({"allOf", "anyOf", "oneOf", "prefixItems"})
_SCHEMA_KEYWORDS = frozenset(
    {
        "additionalProperties",
        "items",
        "additionalItems",
        "contains",
        "not",
        "if",
        "then",
        "else",
        "propertyNames",
        "unevaluatedProperties",
        "unevaluatedItems",
    }
)


def apply_additional_properties(node: SchemaNode, allowed: bool) -> SchemaNode:
    """Return a copy of ``node`` with ``additionalProperties`` pinned on object nodes.

    Only subschema positions are walked. Property-name maps and value
    keywords such as ``default``, ``const``, ``enum`` and ``examples`` are
    data, so they are copied as-is even when they contain a ``properties`` key.
    An explicit ``additionalProperties`` already present wins, and
    ``allowed=True`` leaves the tree as extracted.
    """
    if allowed or not isinstance(node, dict):
        return node

    updated: dict[str, Any] = {}
    for key, value in node.items():
        if key in _SCHEMA_MAP_KEYWORDS and isinstance(value, dict):
            updated[key] = {name: apply_additional_properties(child, allowed) for name, child in value.items()}
        elif key in _SCHEMA_LIST_KEYWORDS and isinstance(value, list):
            updated[key] = [apply_additional_properties(child, allowed) for child in value]
        elif key in _SCHEMA_KEYWORDS:
            if isinstance(value, list):
                updated[key] = [apply_additional_properties(child, allowed) for child in value]
            else:
                updated[key] = apply_additional_properties(value, allowed)
        else:
            updated[key] = value

    if "properties" in updated and "additionalProperties" not in updated:
        updated["additionalProperties"] = False
    return updated


class JsonSchemaExtractor:
    """Reads a JSON schema document and takes its ``definitions`` as the fragment."""

    def extract(self, artifact: SourceArtifact, config: WeldConfig) -> Fragment:
        path = artifact.path
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ExtractionError(f"Failed to process {path}: {exc}", path=path) from exc

        if not isinstance(document, dict):
            raise ExtractionError(f"Failed to process {path}: top-level value must be an object", path=path)

        definitions = document.get("definitions", document.get("$defs", {}))
        if not isinstance(definitions, dict):
            raise ExtractionError(f"Failed to process {path}: 'definitions' must be an object", path=path)

        dialect = document.get("$schema")
        if dialect is not None and not isinstance(dialect, str):
            raise ExtractionError(f"Failed to process {path}: '$schema' must be a string", path=path)

        return Fragment(
            source=artifact,
            definitions={
                name: apply_additional_properties(node, config.additional_properties)
                for name, node in definitions.items()
            },
            dialect=dialect,
        )


def _module_name_for(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"_schemaweld_artifact_{digest}"


def _declared_models(module: Any) -> list[type[BaseModel]]:
    models = []
    for _, value in inspect.getmembers(module, inspect.isclass):
        if issubclass(value, BaseModel) and value is not BaseModel and value.__module__ == module.__name__:
            models.append(value)
    return sorted(models, key=lambda model: model.__name__)


class PydanticModelExtractor:
    """Loads a Python module and emits one definition per declared pydantic model.

    Nested models referenced by a declared model are emitted as definitions
    too, so refs always resolve inside the consolidated document.
    """

    def extract(self, artifact: SourceArtifact, config: WeldConfig) -> Fragment:
        path = artifact.path
        module_name = _module_name_for(path)
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ExtractionError(f"Failed to process {path}: not an importable module", path=path)

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
            definitions: dict[str, SchemaNode] = {}
            for model in _declared_models(module):
                schema = model.model_json_schema(ref_template=REF_TEMPLATE)
                nested = schema.pop("$defs", {})
                for name in sorted(nested):
                    definitions.setdefault(name, nested[name])
                definitions[model.__name__] = schema
        # A module calling sys.exit() at import time fails only its own artifact.
        except (Exception, SystemExit) as exc:
            raise ExtractionError(f"Failed to process {path}: {exc}", path=path) from exc
        finally:
            sys.modules.pop(module_name, None)

        return Fragment(
            source=artifact,
            definitions={
                name: apply_additional_properties(definitions[name], config.additional_properties)
                for name in sorted(definitions)
            },
            dialect=PYDANTIC_DIALECT,
        )


EXTRACTORS_BY_SUFFIX: dict[str, TypeExtractor] = {
    ".json": JsonSchemaExtractor(),
    ".py": PydanticModelExtractor(),
}


def extractor_for(path: Path) -> TypeExtractor:
    extractor = EXTRACTORS_BY_SUFFIX.get(path.suffix.lower())
    if extractor is None:
        raise ExtractionError(f"No extractor registered for '{path.suffix or path.name}' files", path=path)
    return extractor


class SuffixDispatchExtractor:
    """Default extractor: picks the concrete extractor from the file suffix."""

    def extract(self, artifact: SourceArtifact, config: WeldConfig) -> Fragment:
        return extractor_for(artifact.path).extract(artifact, config)
