"""Geometry helpers."""

from __future__ import annotations

from typing import Any, Iterable

from shapely.geometry import LinearRing, MultiPolygon, Polygon, mapping
from shapely.geometry.base import BaseGeometry

from tract_rates.common.models import PolygonRecord, Ring


def extract_rings(geometry: dict[str, Any] | None) -> tuple[Ring, ...]:
    if not geometry:
        return ()
    rings = geometry.get("rings") or []
    out = []
    for ring in rings:
        pairs = tuple((float(pair[0]), float(pair[1])) for pair in ring)
        if len(pairs) >= 4:
            out.append(pairs)
    return tuple(out)


def extract_wkid(geometry: dict[str, Any] | None) -> int | None:
    if not geometry:
        return None
    spatial_ref = geometry.get("spatialReference") or {}
    wkid = spatial_ref.get("latestWkid") or spatial_ref.get("wkid")
    if wkid is None:
        return None
    try:
        return int(wkid)
    except (TypeError, ValueError):
        return None


def _nesting_depth(ring: LinearRing, others: list[LinearRing]) -> int:
    probe = Polygon(ring).representative_point()
    return sum(1 for other in others if other is not ring and Polygon(other).contains(probe))


def rings_to_geometry(rings: Iterable[Ring]) -> BaseGeometry:
    """Assemble Esri-style rings into a shapely (Multi)Polygon.

    Clockwise rings are shells and counter-clockwise rings are holes. When no
    ring is clockwise the winding carries no information, so rings nested an
    odd number of levels deep are taken as holes.
    """
    linear = [LinearRing(ring) for ring in rings]
    shells = [ring for ring in linear if not ring.is_ccw]
    holes = [ring for ring in linear if ring.is_ccw]
    if not shells:
        depths = [_nesting_depth(ring, linear) for ring in linear]
        shells = [ring for ring, depth in zip(linear, depths) if depth % 2 == 0]
        holes = [ring for ring, depth in zip(linear, depths) if depth % 2 == 1]

    shell_polygons = [Polygon(shell) for shell in shells]
    holes_by_shell: list[list[LinearRing]] = [[] for _ in shells]
    for hole in holes:
        probe = Polygon(hole).representative_point()
        owners = [idx for idx, shell_polygon in enumerate(shell_polygons) if shell_polygon.contains(probe)]
        if owners:
            owner = min(owners, key=lambda idx: shell_polygons[idx].area)
            holes_by_shell[owner].append(hole)

    parts = []
    for shell, shell_holes in zip(shells, holes_by_shell):
        polygon = Polygon(shell, shell_holes)
        if not polygon.is_valid:
            polygon = polygon.buffer(0)
        parts.append(polygon)

    if len(parts) == 1:
        return parts[0]
    polygons: list[Polygon] = []
    for part in parts:
        if isinstance(part, MultiPolygon):
            polygons.extend(part.geoms)
        else:
            polygons.append(part)
    return MultiPolygon(polygons)


def polygon_geometry(record: PolygonRecord) -> BaseGeometry:
    return rings_to_geometry(record.rings)


def geojson_geometry(record: PolygonRecord) -> dict[str, Any]:
    return mapping(polygon_geometry(record))
