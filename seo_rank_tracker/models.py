from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
import math
from types import MappingProxyType
from typing import Iterator, Mapping


def as_number(value: object) -> float:
    """Coerce noisy upstream values to a finite float, falling back to 0."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


@dataclass(frozen=True)
class DateWindow:
    name: str
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class QueryCriteria:
    """Filter criteria sent with every page request."""

    start_date: date
    end_date: date
    dimensions: tuple[str, ...]
    search_type: str = "web"
    country_filter: str = ""


@dataclass(frozen=True)
class CanonicalRow:
    dimensions: Mapping[str, str | None]
    clicks: float = 0.0
    impressions: float = 0.0
    ctr: float = 0.0
    position: float = 0.0
    keys: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Freeze the dimension mapping so rows stay immutable once produced.
        if not isinstance(self.dimensions, MappingProxyType):
            object.__setattr__(self, "dimensions", MappingProxyType(dict(self.dimensions)))
        object.__setattr__(self, "keys", tuple(self.keys))

    def dimension(self, name: str) -> str:
        value = self.dimensions.get(name)
        return "" if value is None else str(value).strip()

    def weight(self, zero_impression_weight: float = 1.0) -> float:
        return self.impressions if self.impressions > 0 else zero_impression_weight


@dataclass(frozen=True)
class KeyStat:
    key: str
    clicks: float = 0.0
    impressions: float = 0.0
    weighted_position_sum: float = 0.0
    weight_sum: float = 0.0

    def add(self, clicks: float, impressions: float, position: float, weight: float) -> "KeyStat":
        """Return a copy with one more weighted observation folded in."""
        return replace(
            self,
            clicks=self.clicks + clicks,
            impressions=self.impressions + impressions,
            weighted_position_sum=self.weighted_position_sum + position * weight,
            weight_sum=self.weight_sum + weight,
        )

    def merge(self, other: "KeyStat") -> "KeyStat":
        return replace(
            self,
            clicks=self.clicks + other.clicks,
            impressions=self.impressions + other.impressions,
            weighted_position_sum=self.weighted_position_sum + other.weighted_position_sum,
            weight_sum=self.weight_sum + other.weight_sum,
        )

    @property
    def ctr(self) -> float:
        return self.clicks / self.impressions if self.impressions > 0 else 0.0

    @property
    def avg_position(self) -> float:
        return self.weighted_position_sum / self.weight_sum if self.weight_sum > 0 else 0.0


@dataclass(frozen=True)
class AggregatedSnapshot:
    dimension: str
    stats: Mapping[str, KeyStat]
    date_window: DateWindow | None = None
    top_queries: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stats", MappingProxyType(dict(self.stats)))
        object.__setattr__(self, "top_queries", MappingProxyType(dict(self.top_queries)))

    def __contains__(self, key: object) -> bool:
        return key in self.stats

    def __len__(self) -> int:
        return len(self.stats)

    def __iter__(self) -> Iterator[str]:
        return iter(self.stats)

    def keys(self) -> list[str]:
        return list(self.stats)

    def get(self, key: str) -> KeyStat | None:
        return self.stats.get(key)

    def entries(self) -> list[KeyStat]:
        return list(self.stats.values())

    def top_query(self, key: str) -> str:
        return self.top_queries.get(key, "")


@dataclass(frozen=True)
class DiffRecord:
    key: str
    old_exists: bool
    new_exists: bool
    old_clicks: float
    new_clicks: float
    old_impressions: float
    new_impressions: float
    old_ctr: float
    new_ctr: float
    old_position: float
    new_position: float

    @property
    def delta_clicks(self) -> float:
        return self.new_clicks - self.old_clicks

    @property
    def delta_impressions(self) -> float:
        return self.new_impressions - self.old_impressions

    @property
    def delta_ctr(self) -> float:
        return self.new_ctr - self.old_ctr

    @property
    def position_gain(self) -> float:
        # Lower positions are better, so a drop in position is a gain.
        return self.old_position - self.new_position


@dataclass
class MetricSummary:
    row_count: int = 0
    clicks: float = 0.0
    impressions: float = 0.0
    ctr: float = 0.0
    avg_position: float = 0.0

    @classmethod
    def from_rows(
        cls,
        rows: list[CanonicalRow],
        zero_impression_weight: float = 1.0,
    ) -> "MetricSummary":
        if not rows:
            return cls()

        total = KeyStat(key="TOTAL")
        for row in rows:
            total = total.add(row.clicks, row.impressions, row.position, row.weight(zero_impression_weight))
        return cls(
            row_count=len(rows),
            clicks=total.clicks,
            impressions=total.impressions,
            ctr=total.ctr,
            avg_position=total.avg_position,
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, object] | None) -> "MetricSummary":
        data = payload or {}
        return cls(
            row_count=int(as_number(data.get("rowCount"))),
            clicks=as_number(data.get("clicks")),
            impressions=as_number(data.get("impressions")),
            ctr=as_number(data.get("ctr")),
            avg_position=as_number(data.get("avgPosition")),
        )

    def to_payload(self) -> dict[str, float | int]:
        return {
            "rowCount": self.row_count,
            "clicks": self.clicks,
            "impressions": self.impressions,
            "ctr": self.ctr,
            "avgPosition": self.avg_position,
        }
