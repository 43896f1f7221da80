"""Write the consolidated schema and its companion symbol index to disk."""

from __future__ import annotations

import json
from pathlib import Path

from schemaweld.errors import CodeGenerationError
from schemaweld.models import ConsolidatedSchema

SCHEMA_FILENAME = "validation.schema.json"
SYMBOL_INDEX_FILENAME = "schema_definition.py"
GENERATED_SUFFIXES = (".json", ".py")

SYMBOL_INDEX_TEMPLATE = '''"""Generated by schemaweld from {{SCHEMA_FILE}}. Do not edit."""

DIALECT = {{DIALECT}}

SCHEMA_FILE = {{SCHEMA_FILE_LITERAL}}

SCHEMAS = {
{{SCHEMA_ENTRIES}}}

SYMBOLS = (
{{SYMBOL_ENTRIES}})
'''


def render_schema(schema: ConsolidatedSchema, minify: bool = False) -> str:
    """Serialize the canonical document; definitions keep their sorted order."""
    document = schema.to_document()
    if minify:
        return json.dumps(document, ensure_ascii=False, separators=(",", ":")) + "\n"
    return json.dumps(document, indent=4, ensure_ascii=False) + "\n"


def render_symbol_index(schema: ConsolidatedSchema) -> str:
    symbols = schema.symbols()
    replacements = {
        "SCHEMA_FILE_LITERAL": _py_str(SCHEMA_FILENAME),
        "SCHEMA_FILE": SCHEMA_FILENAME,
        "DIALECT": _py_str(schema.dialect),
        "SCHEMA_ENTRIES": "".join(
            f"    {_py_str(f'#/definitions/{symbol}')}: {_py_str(symbol)},\n" for symbol in symbols
        ),
        "SYMBOL_ENTRIES": "".join(f"    {_py_str(symbol)},\n" for symbol in symbols),
    }
    return _render_template(SYMBOL_INDEX_TEMPLATE, replacements)


def write_schema(schema: ConsolidatedSchema, output_dir: Path, minify: bool = False) -> Path:
    return _write(Path(output_dir) / SCHEMA_FILENAME, render_schema(schema, minify=minify))


def write_symbol_index(schema: ConsolidatedSchema, output_dir: Path) -> Path:
    return _write(Path(output_dir) / SYMBOL_INDEX_FILENAME, render_symbol_index(schema))


def render_outputs(
    schema: ConsolidatedSchema,
    output_dir: Path,
    minify: bool = False,
    helpers: bool = True,
) -> list[Path]:
    """Write every output artifact for a run and return the written paths.

    Args:
        schema: Consolidated schema from a finished run.
        output_dir: Directory receiving the outputs; created when absent.
        minify: Emit compact JSON instead of 4-space indentation.
        helpers: Also write the generated ``schema_definition.py`` symbol index.

    Returns:
        Written paths, schema document first.
    """
    written = [write_schema(schema, output_dir, minify=minify)]
    if helpers:
        written.append(write_symbol_index(schema, output_dir))
    return written


def clean_output_dir(output_dir: Path) -> list[Path]:
    """Remove previously generated files, leaving directories and other files alone."""
    output_dir = Path(output_dir)
    if not output_dir.exists():
        return []
    removed: list[Path] = []
    try:
        for path in sorted(output_dir.iterdir()):
            if path.is_file() and path.suffix in GENERATED_SUFFIXES:
                path.unlink()
                removed.append(path)
    except OSError as exc:
        raise CodeGenerationError(f"Failed to clean output directory: {exc}", output_file=output_dir) from exc
    return removed


def _write(path: Path, content: str) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CodeGenerationError(f"Failed to write {path.name}: {exc}", output_file=path) from exc
    return path


def _render_template(template: str, replacements: dict[str, str]) -> str:
    """Replace ``{{TOKEN}}`` placeholders in a template string."""
    rendered = template
    for token, value in replacements.items():
        rendered = rendered.replace(f"{{{{{token}}}}}", value)
    return rendered


def _py_str(value: str) -> str:
    """Quote ``value`` as a Python string literal."""
    return json.dumps(value, ensure_ascii=True)
