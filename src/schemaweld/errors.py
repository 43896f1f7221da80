"""Error taxonomy for consolidation runs."""

from __future__ import annotations

import difflib
import json
from pathlib import Path
from typing import Any


class SchemaWeldError(Exception):
    """Base error carrying a stable taxonomy code."""

    code = "SCHEMAWELD_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detailed_message(self) -> str:
        return self.message


class DiscoveryError(SchemaWeldError):
    """No artifacts matched the pattern, or the root could not be read."""

    code = "FILE_DISCOVERY_ERROR"

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


class ExtractionError(SchemaWeldError):
    """One artifact could not be turned into a schema fragment."""

    code = "SCHEMA_GENERATION_ERROR"

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


class DuplicateSymbolError(SchemaWeldError):
    """Two artifacts define the same symbol with different shapes."""

    code = "DUPLICATE_SYMBOL_ERROR"

    def __init__(
        self,
        symbol: str,
        existing_path: Path,
        new_path: Path,
        existing_definition: Any,
        new_definition: Any,
    ):
        super().__init__(
            f"Duplicate symbol '{symbol}' found with different implementations "
            f"in {existing_path} and {new_path}"
        )
        self.symbol = symbol
        self.existing_path = existing_path
        self.new_path = new_path
        self.existing_definition = existing_definition
        self.new_definition = new_definition

    def detailed_message(self) -> str:
        existing = json.dumps(self.existing_definition, indent=2, sort_keys=True).splitlines()
        new = json.dumps(self.new_definition, indent=2, sort_keys=True).splitlines()
        diff = difflib.unified_diff(
            existing,
            new,
            fromfile=str(self.existing_path),
            tofile=str(self.new_path),
            lineterm="",
        )
        return "\n".join(
            [
                f"[{self.code}] {self.message}",
                f"Symbol: {self.symbol}",
                f"Existing: {self.existing_path}",
                f"New: {self.new_path}",
                *diff,
            ]
        )


class CacheError(SchemaWeldError):
    """Cache I/O failed; always recovered locally as a cache miss."""

    code = "CACHE_ERROR"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class CodeGenerationError(SchemaWeldError):
    code = "CODE_GENERATION_ERROR"

    def __init__(self, message: str, output_file: Path | None = None):
        super().__init__(message)
        self.output_file = output_file


class ConfigurationError(SchemaWeldError):
    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


def format_error(error: BaseException, verbose: bool = False) -> str:
    """Render an error for the top-level caller.

    Known errors render as ``[CODE] message``; verbose mode switches to the
    detailed form, which for duplicates includes a diff of both definitions.
    """
    if isinstance(error, SchemaWeldError):
        if verbose:
            detailed = error.detailed_message()
            if detailed != error.message:
                return detailed
        return f"[{error.code}] {error.message}"
    return str(error) or type(error).__name__
