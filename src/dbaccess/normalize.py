"""Conversion between driver-native shapes and the canonical ones."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .types import DatabaseResult, Row


@dataclass(frozen=True)
class RawResult:
    """What a driver hands back from one statement, before normalization.

    Attributes:
        rows: Fetched rows as dictionaries
        row_count: Driver-reported affected/returned count (None if unknown)
        fields: Column metadata as reported by the driver
    """

    rows: Sequence[Row] = ()
    row_count: int | None = None
    fields: Sequence[Any] = field(default_factory=tuple)


def normalize_result(raw: RawResult) -> DatabaseResult:
    """Convert a driver result into a DatabaseResult.

    The row count falls back to the number of rows when the driver omits it.
    psycopg reports -1 for statements without a meaningful count, which is
    treated the same as a missing count.

    Args:
        raw: Driver result

    Returns:
        New DatabaseResult; the input is left untouched
    """
    rows = [dict(row) for row in raw.rows]
    row_count = raw.row_count if raw.row_count and raw.row_count > 0 else len(rows)
    return DatabaseResult(rows=rows, row_count=row_count, fields=list(raw.fields))


def normalize_params(
    params: Sequence[Any] | Mapping[str, Any] | None, positional: bool = True
) -> list[Any] | dict[str, Any]:
    """Convert query parameters into the shape the driver accepts.

    Args:
        params: Ordered sequence, named mapping, or None
        positional: Whether the driver only understands positional binds.
            Mappings are then flattened to their values in iteration order.

    Returns:
        A new list (positional) or dict (named binds)

    Raises:
        TypeError: If params is a string or bytes, or not a sequence/mapping

    Example:
        >>> normalize_params({"id": 5, "name": "x"})
        [5, 'x']
    """
    if params is None:
        return []
    if isinstance(params, Mapping):
        return list(params.values()) if positional else dict(params)
    if isinstance(params, (str, bytes, bytearray)):
        raise TypeError(f"Query parameters must be a sequence or mapping, got {type(params).__name__}")
    if isinstance(params, Sequence):
        return list(params)
    raise TypeError(f"Query parameters must be a sequence or mapping, got {type(params).__name__}")
