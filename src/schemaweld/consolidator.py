"""Cross-file compatibility checks and the deterministic schema merge.

Everything here is a pure function of its inputs: fragments are folded in
path-sorted order and the output definitions are keyed in ordinal order of
symbol name, so neither discovery order nor task completion order can leak
into the emitted document.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from schemaweld.errors import DuplicateSymbolError
from schemaweld.models import DEFAULT_DIALECT, ConsolidatedSchema, Fragment, SchemaNode


def nodes_equal(left: SchemaNode, right: SchemaNode) -> bool:
    """Deep structural equality over JSON-like trees.

    Mapping key order is ignored, list order is not, and JSON type tags are
    kept apart, so ``True`` never equals ``1``.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(nodes_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(nodes_equal(a, b) for a, b in zip(left, right))
    if type(left) is not type(right):
        return False
    return left == right


def _path_sorted(fragments: Sequence[Fragment]) -> list[Fragment]:
    return sorted(fragments, key=lambda fragment: str(fragment.path))


def validate_compatibility(fragments: Sequence[Fragment]) -> None:
    """Fail on the first symbol defined twice with different shapes.

    Raises:
        DuplicateSymbolError: Carrying the symbol, both source paths, and both
            definitions.
    """
    seen: dict[str, tuple[Path, SchemaNode]] = {}
    for fragment in _path_sorted(fragments):
        for symbol in sorted(fragment.definitions):
            node = fragment.definitions[symbol]
            previous = seen.get(symbol)
            if previous is None:
                seen[symbol] = (fragment.path, node)
                continue
            previous_path, previous_node = previous
            if not nodes_equal(previous_node, node):
                raise DuplicateSymbolError(
                    symbol=symbol,
                    existing_path=previous_path,
                    new_path=fragment.path,
                    existing_definition=previous_node,
                    new_definition=node,
                )


def merge(fragments: Sequence[Fragment]) -> ConsolidatedSchema:
    dialect: str | None = None
    definitions: dict[str, SchemaNode] = {}
    for fragment in _path_sorted(fragments):
        if dialect is None and fragment.dialect:
            dialect = fragment.dialect
        for symbol, node in fragment.definitions.items():
            # Repeats are validated identical; the first sighting stays.
            definitions.setdefault(symbol, node)

    return ConsolidatedSchema(
        dialect=dialect or DEFAULT_DIALECT,
        definitions={symbol: definitions[symbol] for symbol in sorted(definitions)},
    )


def consolidate(fragments: Sequence[Fragment]) -> ConsolidatedSchema:
    validate_compatibility(fragments)
    return merge(fragments)
