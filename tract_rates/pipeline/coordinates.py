"""Coordinate reference system resolution and reprojection."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from tract_rates.common.errors import StageError, UnknownCRSError
from tract_rates.common.models import PointRecord, PolygonRecord, Ring


def resolve_crs(identifier: str | int) -> CRS:
    try:
        return CRS.from_user_input(identifier)
    except CRSError as exc:
        raise UnknownCRSError(f"Unknown coordinate reference system: {identifier!r}") from exc


def same_crs(source_crs: str | int, target_crs: str | int) -> bool:
    return resolve_crs(source_crs) == resolve_crs(target_crs)


def build_transformer(source_crs: str | int, target_crs: str | int) -> Transformer | None:
    """Return a lon/lat-ordered transformer, or ``None`` for an identity pair."""
    source = resolve_crs(source_crs)
    target = resolve_crs(target_crs)
    if source == target:
        return None
    return Transformer.from_crs(source, target, always_xy=True)


def _checked(xs, ys, source_crs, target_crs) -> tuple[list[float], list[float]]:
    if any(not math.isfinite(v) for v in (*xs, *ys)):
        raise StageError(f"Reprojection {source_crs} -> {target_crs} produced non-finite coordinates")
    return list(xs), list(ys)


def _transform(
    transformer: Transformer,
    xs: Iterable[float],
    ys: Iterable[float],
    source_crs: str | int,
    target_crs: str | int,
) -> tuple[list[float], list[float]]:
    xs = list(xs)
    ys = list(ys)
    try:
        out_x, out_y = transformer.transform(xs, ys, errcheck=True)
    except ProjError as exc:
        raise StageError(f"Reprojection {source_crs} -> {target_crs} failed: {exc}") from exc
    return _checked(list(out_x), list(out_y), source_crs, target_crs)


def reproject_xy(x: float, y: float, source_crs: str | int, target_crs: str | int) -> tuple[float, float]:
    transformer = build_transformer(source_crs, target_crs)
    if transformer is None:
        return x, y
    out_x, out_y = _transform(transformer, [x], [y], source_crs, target_crs)
    return out_x[0], out_y[0]


def reproject_points(
    points: Iterable[PointRecord],
    source_crs: str | int,
    target_crs: str | int,
) -> tuple[PointRecord, ...]:
    points = tuple(points)
    transformer = build_transformer(source_crs, target_crs)
    if transformer is None or not points:
        return points
    xs, ys = _transform(transformer, (p.x for p in points), (p.y for p in points), source_crs, target_crs)
    target = str(target_crs)
    return tuple(replace(point, x=x, y=y, crs=target) for point, x, y in zip(points, xs, ys))


def _reproject_ring(transformer: Transformer, ring: Ring, source_crs, target_crs) -> Ring:
    xs, ys = _transform(transformer, (pair[0] for pair in ring), (pair[1] for pair in ring), source_crs, target_crs)
    return tuple(zip(xs, ys))


def reproject_polygons(
    polygons: Iterable[PolygonRecord],
    source_crs: str | int,
    target_crs: str | int,
) -> tuple[PolygonRecord, ...]:
    polygons = tuple(polygons)
    transformer = build_transformer(source_crs, target_crs)
    if transformer is None:
        return polygons
    target = str(target_crs)
    return tuple(
        replace(
            polygon,
            rings=tuple(_reproject_ring(transformer, ring, source_crs, target_crs) for ring in polygon.rings),
            crs=target,
        )
        for polygon in polygons
    )


def declared_crs(records: Iterable[PointRecord | PolygonRecord], fallback: str) -> str:
    """Return the single CRS shared by ``records``."""
    values = sorted({record.crs for record in records})
    if not values:
        return fallback
    if len(values) > 1:
        raise StageError(f"Records declare mixed coordinate reference systems: {', '.join(values)}")
    return values[0]
