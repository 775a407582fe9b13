from __future__ import annotations

import math

import pytest

from seo_rank_tracker.errors import InvalidParameterError, MalformedInputError
from seo_rank_tracker.ingestion import (
    normalize_api_row,
    parse_dimensions,
    rows_from_payload,
)
from seo_rank_tracker.models import as_number


@pytest.mark.parametrize(
    "value, expected",
    [
        (3, 3.0),
        ("12.5", 12.5),
        (None, 0.0),
        ("abc", 0.0),
        (math.nan, 0.0),
        (math.inf, 0.0),
        (-math.inf, 0.0),
        ([1], 0.0),
        (10**400, 0.0),
    ],
)
def test_as_number_coerces_noisy_values(value: object, expected: float) -> None:
    assert as_number(value) == expected


def test_normalize_api_row_maps_keys_positionally() -> None:
    row = normalize_api_row(
        {"keys": ["shoes", "/shoes"], "clicks": 4, "impressions": "nan", "position": 2.5},
        ("query", "page", "device"),
    )

    assert row.dimensions == {"query": "shoes", "page": "/shoes", "device": None}
    assert row.impressions == 0.0
    assert row.position == 2.5
    assert row.keys == ("shoes", "/shoes")


def test_normalize_api_row_coerces_oversized_integers() -> None:
    row = normalize_api_row({"keys": ["q"], "impressions": 10**400, "clicks": 2}, ("query",))

    assert row.impressions == 0.0
    assert row.clicks == 2.0


def test_canonical_row_dimensions_are_read_only() -> None:
    row = normalize_api_row({"keys": ["a"]}, ("query",))

    with pytest.raises(TypeError):
        row.dimensions["query"] = "b"  # type: ignore[index]


def test_rows_from_payload_rejects_non_list_rows() -> None:
    with pytest.raises(MalformedInputError):
        rows_from_payload({"rows": {"not": "a list"}})
    with pytest.raises(MalformedInputError):
        rows_from_payload(["rows"])


def test_rows_from_payload_coerces_at_ingestion() -> None:
    rows = rows_from_payload(
        {
            "rows": [
                {"dimensions": {"page": "/a", "query": None}, "clicks": "x", "impressions": 10},
                {"dimensions": None, "position": "inf"},
            ]
        }
    )

    assert rows[0].clicks == 0.0
    assert rows[0].dimensions["query"] is None
    assert rows[1].dimensions == {}
    assert rows[1].position == 0.0


def test_parse_dimensions_deduplicates_and_validates() -> None:
    assert parse_dimensions(" query, page ,query") == ("query", "page")
    assert parse_dimensions(None) == ("query", "page", "device", "country", "date")
    with pytest.raises(InvalidParameterError):
        parse_dimensions("query,searchAppearance")
