"""Assign points to the polygon that contains them."""

from __future__ import annotations

from typing import Sequence

from shapely import STRtree
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry

from tract_rates.common.errors import JoinAmbiguityError
from tract_rates.common.geometry import polygon_geometry
from tract_rates.common.models import JoinedRecord, PointRecord, PolygonRecord
from tract_rates.pipeline.coordinates import reproject_points, reproject_polygons


class RegionIndex:
    """STRtree over polygon geometries, answering in polygon input order.

    Containment is inclusive: a point on an edge belongs to the polygon. When
    several polygons cover a point (overlaps, or a shared edge) the first one
    in input order wins. With ``strict`` set, a point covered by several
    polygons and lying in the interior of at least one of them raises.
    """

    def __init__(self, polygons: Sequence[PolygonRecord], *, strict: bool = False) -> None:
        self.polygons = tuple(polygons)
        self.strict = strict
        self.geometries: list[BaseGeometry] = [polygon_geometry(polygon) for polygon in self.polygons]
        self.tree = STRtree(self.geometries) if self.geometries else None

    def candidates(self, point: Point) -> list[int]:
        if self.tree is None:
            return []
        return sorted(int(idx) for idx in self.tree.query(point))

    def locate(self, x: float, y: float) -> str | None:
        point = Point(x, y)
        hits: list[int] = []
        for idx in self.candidates(point):
            if not self.geometries[idx].covers(point):
                continue
            hits.append(idx)
            if not self.strict:
                break

        if not hits:
            return None
        if len(hits) > 1 and any(self.geometries[idx].contains(point) for idx in hits):
            keys = ", ".join(self.polygons[idx].region_key for idx in hits)
            raise JoinAmbiguityError(f"Point ({x}, {y}) is claimed by overlapping regions: {keys}")
        return self.polygons[hits[0]].region_key


def spatial_join(
    points: Sequence[PointRecord],
    polygons: Sequence[PolygonRecord],
    *,
    points_crs: str,
    polygons_crs: str,
    target_crs: str,
    strict: bool = False,
) -> tuple[JoinedRecord, ...]:
    """Reproject both inputs to ``target_crs`` and tag each point with its region key.

    The result has one record per input point, in input order. Joined records
    keep the original (un-reprojected) point.
    """
    projected_points = reproject_points(points, points_crs, target_crs)
    projected_polygons = reproject_polygons(polygons, polygons_crs, target_crs)
    index = RegionIndex(projected_polygons, strict=strict)

    return tuple(
        JoinedRecord(point=original, region_key=index.locate(projected.x, projected.y))
        for original, projected in zip(points, projected_points)
    )
