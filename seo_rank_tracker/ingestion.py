from __future__ import annotations

from typing import Any, Mapping, Sequence

from seo_rank_tracker.errors import InvalidParameterError, MalformedInputError
from seo_rank_tracker.models import CanonicalRow, as_number


ALLOWED_DIMENSIONS = ("query", "page", "device", "country", "date")
DEFAULT_DIMENSIONS = "query,page,device,country,date"


def parse_dimensions(raw: str | Sequence[str] | None) -> tuple[str, ...]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raw = DEFAULT_DIMENSIONS
    parts = raw.split(",") if isinstance(raw, str) else list(raw)

    values: list[str] = []
    for part in parts:
        value = str(part).strip()
        if value and value not in values:
            values.append(value)

    invalid = [value for value in values if value not in ALLOWED_DIMENSIONS]
    if invalid:
        raise InvalidParameterError(
            f"Invalid dimensions: {', '.join(invalid)}. Allowed: {','.join(ALLOWED_DIMENSIONS)}"
        )
    if not values:
        raise InvalidParameterError("At least one dimension is required.")
    return tuple(values)


def _dimension_value(value: Any) -> str | None:
    return None if value is None else str(value)


def normalize_api_row(raw: Mapping[str, Any], dimensions: Sequence[str]) -> CanonicalRow:
    """Map a Search Analytics API row onto named dimensions.

    API rows carry their dimension values as a positional ``keys`` list in
    the order the dimensions were requested.
    """
    keys_raw = raw.get("keys")
    keys = [str(key) for key in keys_raw] if isinstance(keys_raw, (list, tuple)) else []
    values = {
        name: (keys[index] if index < len(keys) else None)
        for index, name in enumerate(dimensions)
    }
    return CanonicalRow(
        dimensions=values,
        clicks=as_number(raw.get("clicks")),
        impressions=as_number(raw.get("impressions")),
        ctr=as_number(raw.get("ctr")),
        position=as_number(raw.get("position")),
        keys=tuple(keys),
    )


def normalize_snapshot_row(raw: Any) -> CanonicalRow:
    if not isinstance(raw, Mapping):
        raise MalformedInputError(f"Snapshot row must be an object, got {type(raw).__name__}.")

    dims_raw = raw.get("dimensions")
    dims = dims_raw if isinstance(dims_raw, Mapping) else {}
    keys_raw = raw.get("keys")
    keys = tuple(str(key) for key in keys_raw) if isinstance(keys_raw, (list, tuple)) else ()
    return CanonicalRow(
        dimensions={str(name): _dimension_value(value) for name, value in dims.items()},
        clicks=as_number(raw.get("clicks")),
        impressions=as_number(raw.get("impressions")),
        ctr=as_number(raw.get("ctr")),
        position=as_number(raw.get("position")),
        keys=keys,
    )


def rows_from_payload(payload: Any) -> list[CanonicalRow]:
    if not isinstance(payload, Mapping):
        raise MalformedInputError("Invalid snapshot format: top-level value must be an object.")
    rows = payload.get("rows")
    if not isinstance(rows, list):
        raise MalformedInputError("Invalid snapshot format: 'rows' must be a list.")
    return [normalize_snapshot_row(row) for row in rows]


def row_to_payload(row: CanonicalRow) -> dict[str, Any]:
    return {
        "keys": list(row.keys),
        "dimensions": dict(row.dimensions),
        "clicks": row.clicks,
        "impressions": row.impressions,
        "ctr": row.ctr,
        "position": row.position,
    }
