"""Run configuration consumed by the consolidation pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from schemaweld.errors import ConfigurationError

DEFAULT_PATTERN = "*.schema.json"
DEFAULT_OUTPUT_PATH = Path(".schemaweld")
DEFAULT_CACHE_PATH = Path(".schemaweld-cache")


class WeldConfig(BaseModel):
    """Settings for one consolidation run."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(default=DEFAULT_PATTERN, min_length=1)
    root_path: Path = Path(".")
    output_path: Path = DEFAULT_OUTPUT_PATH
    cache_enabled: bool = False
    cache_path: Path = DEFAULT_CACHE_PATH
    parallel_enabled: bool = True
    max_workers: int | None = Field(default=None, ge=1)
    additional_properties: bool = False
    minify: bool = False
    helpers: bool = True
    verbose: bool = False


def build_config(**values: Any) -> WeldConfig:
    """Validate raw option values into a ``WeldConfig``.

    Raises:
        ConfigurationError: If any value fails validation. The first offending
            field is attached to the error.
    """
    try:
        return WeldConfig.model_validate(values)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(f"Invalid configuration: {first.get('msg', exc)}", field=field) from exc
