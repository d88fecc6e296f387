"""Aggregate CSV and GeoJSON export."""

from __future__ import annotations

from pathlib import Path

from tract_rates.common.fs import write_csv, write_json
from tract_rates.common.geometry import geojson_geometry
from tract_rates.common.models import AggregateRecord, AggregationResult
from tract_rates.pipeline.coordinates import reproject_polygons

AGGREGATE_HEADERS = [
    "region_key",
    "event_count",
    "denominator",
    "rate",
    "status",
]

RATE_DIGITS = 6
GEOJSON_CRS = "EPSG:4326"


def _status(result: AggregationResult, record: AggregateRecord) -> str:
    if record is result.unassigned:
        return "unassigned"
    if any(record is other for other in result.unmatched):
        return "no_denominator"
    return "ok"


def _serialize_row(record: AggregateRecord, status: str) -> dict:
    out = {}
    values = {
        "region_key": record.region_key,
        "event_count": record.event_count,
        "denominator": record.denominator,
        "rate": None if record.rate is None else round(record.rate, RATE_DIGITS),
        "status": status,
    }
    for key in AGGREGATE_HEADERS:
        value = values[key]
        out[key] = "" if value is None else value
    return out


def aggregate_rows(result: AggregationResult) -> list[dict]:
    return [_serialize_row(record, _status(result, record)) for record in result.all_records()]


def write_aggregates_csv(result: AggregationResult, path: Path) -> Path:
    write_csv(path, AGGREGATE_HEADERS, aggregate_rows(result))
    return path


def build_feature_collection(result: AggregationResult) -> dict:
    """GeoJSON features for every record with a polygon, in WGS 84 lon/lat."""
    features = []
    for record in result.all_records():
        if record.polygon is None:
            continue
        (polygon,) = reproject_polygons([record.polygon], record.polygon.crs, GEOJSON_CRS)
        properties = _serialize_row(record, _status(result, record))
        properties.update({k: v for k, v in polygon.attributes.items() if k not in properties})
        features.append(
            {
                "type": "Feature",
                "id": record.region_key,
                "geometry": geojson_geometry(polygon),
                "properties": properties,
            }
        )
    return {"type": "FeatureCollection", "features": features}


def write_aggregates_geojson(result: AggregationResult, path: Path) -> Path:
    write_json(path, build_feature_collection(result), indent=None)
    return path
