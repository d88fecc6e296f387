"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

Ring = tuple[tuple[float, float], ...]


class UnassignedPolicy(str, Enum):
    DROP = "drop"
    RETAIN = "retain"


@dataclass(frozen=True)
class PointRecord:
    x: float
    y: float
    crs: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PolygonRecord:
    region_key: str
    rings: tuple[Ring, ...]
    crs: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["rings"] = [[list(pair) for pair in ring] for ring in self.rings]
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PolygonRecord":
        return cls(
            region_key=str(payload["region_key"]),
            rings=tuple(tuple((float(x), float(y)) for x, y in ring) for ring in payload["rings"]),
            crs=str(payload["crs"]),
            attributes=dict(payload.get("attributes") or {}),
        )


@dataclass(frozen=True)
class JoinedRecord:
    point: PointRecord
    region_key: str | None

    @property
    def is_assigned(self) -> bool:
        return self.region_key is not None


@dataclass(frozen=True)
class AggregateRecord:
    region_key: str
    event_count: int
    denominator: float | None
    rate: float | None
    polygon: PolygonRecord | None = None


@dataclass(frozen=True)
class AggregationResult:
    records: tuple[AggregateRecord, ...]
    unmatched: tuple[AggregateRecord, ...]
    unassigned_count: int
    scale: float
    unassigned: AggregateRecord | None = None

    @property
    def total_events(self) -> int:
        return (
            sum(r.event_count for r in self.records)
            + sum(r.event_count for r in self.unmatched)
            + self.unassigned_count
        )

    def all_records(self) -> tuple[AggregateRecord, ...]:
        tail = (self.unassigned,) if self.unassigned is not None else ()
        return self.records + self.unmatched + tail
