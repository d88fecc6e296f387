"""Boundary polygons from the TIGERweb ArcGIS REST service."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from tract_rates.common.cache import cache_key, cache_path, cached_fetch
from tract_rates.common.errors import ConfigError, NetworkFetchError
from tract_rates.common.geometry import extract_rings, extract_wkid
from tract_rates.common.http import HttpClient, HttpRequestError
from tract_rates.common.models import PolygonRecord
from tract_rates.common.schema import validate_filters


def _layer_url(service_url: str, layer_id: int) -> str:
    parsed = urlparse(service_url)
    suffix = parsed.path.rstrip("/").split("/")[-1]
    if suffix.isdigit():
        return service_url.rstrip("/")
    return f"{service_url.rstrip('/')}/{layer_id}"


def _region_layer(region_type: str, boundary_config: dict) -> dict:
    layer = boundary_config["region_types"].get(region_type)
    if layer is None:
        raise ConfigError(f"No boundary layer configured for region type {region_type!r}")
    return layer


def build_where_clause(filters: dict[str, str], filter_fields: dict[str, str]) -> str:
    clean = validate_filters(filters)
    clauses = []
    for name, value in clean.items():
        field = filter_fields.get(name)
        if field is None:
            raise ConfigError(f"No boundary field mapped for filter {name!r}")
        clauses.append(f"{field}='{value}'")
    return " AND ".join(clauses)


def _fetch_ids(client: HttpClient, layer_url: str, where: str) -> list[int]:
    payload = client.get_json(
        f"{layer_url}/query",
        source_type="tigerweb",
        params={"where": where, "returnIdsOnly": "true", "f": "json"},
    )
    if "error" in payload:
        raise HttpRequestError(f"TIGERweb ID query failed for {layer_url}: {payload['error']}")
    return sorted(int(v) for v in payload.get("objectIds") or [])


def _fetch_chunk(
    client: HttpClient,
    layer_url: str,
    object_ids: list[int],
    out_fields: str,
    out_sr: int | None,
) -> dict:
    params = {
        "objectIds": ",".join(str(i) for i in object_ids),
        "outFields": out_fields,
        "returnGeometry": "true",
        "f": "json",
    }
    if out_sr is not None:
        params["outSR"] = str(out_sr)

    # Object id lists exceed GET URL limits.
    payload = client.post_form_json(
        f"{layer_url}/query",
        source_type="tigerweb",
        data=params,
    )
    if "error" in payload:
        raise HttpRequestError(f"TIGERweb feature query failed for {layer_url}: {payload['error']}")
    return payload


def _chunked(values: list[int], size: int):
    for i in range(0, len(values), size):
        yield values[i : i + size]


def _feature_to_record(feature: dict, key_field: str, default_crs: str, payload_wkid: int | None) -> PolygonRecord | None:
    attributes = feature.get("attributes") or {}
    geometry = feature.get("geometry") or None
    region_key = attributes.get(key_field)
    rings = extract_rings(geometry)
    if region_key in (None, "") or not rings:
        return None

    wkid = extract_wkid(geometry) or payload_wkid
    crs = f"EPSG:{wkid}" if wkid is not None else default_crs
    return PolygonRecord(
        region_key=str(region_key),
        rings=rings,
        crs=crs,
        attributes={k: v for k, v in attributes.items() if k != key_field},
    )


def fetch_boundaries(
    region_type: str,
    filters: dict[str, str],
    boundary_config: dict,
    *,
    http_client: HttpClient,
) -> tuple[PolygonRecord, ...]:
    layer = _region_layer(region_type, boundary_config)
    layer_url = _layer_url(boundary_config["service_url"], int(layer["layer_id"]))
    where = build_where_clause(filters, layer["filter_fields"])
    out_fields = layer.get("out_fields", "*")
    out_sr = boundary_config.get("out_sr")
    id_chunk_size = int(boundary_config.get("id_chunk_size", 100))

    object_ids = _fetch_ids(http_client, layer_url, where)
    if not object_ids:
        raise NetworkFetchError(f"TIGERweb returned no {region_type} features for {where}")

    records: dict[str, PolygonRecord] = {}
    for chunk_ids in _chunked(object_ids, id_chunk_size):
        payload = _fetch_chunk(http_client, layer_url, chunk_ids, out_fields, out_sr)
        payload_wkid = extract_wkid({"spatialReference": payload.get("spatialReference")})
        for feature in payload.get("features") or []:
            record = _feature_to_record(feature, layer["key_field"], boundary_config["default_crs"], payload_wkid)
            if record is not None and record.region_key not in records:
                records[record.region_key] = record

    return tuple(records[key] for key in sorted(records))


def load_boundaries(
    region_type: str,
    filters: dict[str, str],
    boundary_config: dict,
    data_dir: Path,
    *,
    http_client: HttpClient,
) -> tuple[tuple[PolygonRecord, ...], bool]:
    """Fetch boundaries through the on-disk cache; returns ``(records, cache_hit)``."""
    path = cache_path(data_dir, "boundaries", cache_key(region_type, filters=filters))
    return cached_fetch(
        path,
        lambda: fetch_boundaries(region_type, filters, boundary_config, http_client=http_client),
        encode=lambda records: {
            "region_type": region_type,
            "filters": filters,
            "records": [record.to_dict() for record in records],
        },
        decode=lambda payload: tuple(PolygonRecord.from_dict(item) for item in payload["records"]),
    )
