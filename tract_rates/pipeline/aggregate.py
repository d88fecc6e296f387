"""Count joined events per region and compute normalised rates."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping

from tract_rates.common.constants import UNASSIGNED_KEY
from tract_rates.common.models import (
    AggregateRecord,
    AggregationResult,
    JoinedRecord,
    PolygonRecord,
    UnassignedPolicy,
)


def compute_rate(count: int, denominator: float | None, scale: float) -> float | None:
    if denominator is None or denominator == 0:
        return None
    return count / denominator * scale


def count_by_region(joined: Iterable[JoinedRecord]) -> tuple[Counter, int]:
    counts: Counter = Counter()
    unassigned = 0
    for record in joined:
        if record.region_key is None:
            unassigned += 1
        else:
            counts[record.region_key] += 1
    return counts, unassigned


def aggregate_rates(
    joined: Iterable[JoinedRecord],
    denominators: Mapping[str, float | None],
    polygons: Iterable[PolygonRecord] = (),
    *,
    scale: float,
    unassigned: UnassignedPolicy,
) -> AggregationResult:
    """Left-join event counts onto the denominator mapping.

    Every denominator region appears, with a zero count when no event fell in
    it. Regions that received events but have no denominator entry are kept
    in ``unmatched`` with a null rate.
    """
    policy = UnassignedPolicy(unassigned)
    counts, unassigned_count = count_by_region(joined)
    polygon_by_key = {polygon.region_key: polygon for polygon in polygons}

    records = tuple(
        AggregateRecord(
            region_key=key,
            event_count=counts.get(key, 0),
            denominator=denominators[key],
            rate=compute_rate(counts.get(key, 0), denominators[key], scale),
            polygon=polygon_by_key.get(key),
        )
        for key in sorted(denominators)
    )
    unmatched = tuple(
        AggregateRecord(
            region_key=key,
            event_count=counts[key],
            denominator=None,
            rate=None,
            polygon=polygon_by_key.get(key),
        )
        for key in sorted(counts)
        if key not in denominators
    )

    retained = None
    if policy is UnassignedPolicy.RETAIN:
        retained = AggregateRecord(
            region_key=UNASSIGNED_KEY,
            event_count=unassigned_count,
            denominator=None,
            rate=None,
        )

    return AggregationResult(
        records=records,
        unmatched=unmatched,
        unassigned_count=unassigned_count,
        scale=float(scale),
        unassigned=retained,
    )
