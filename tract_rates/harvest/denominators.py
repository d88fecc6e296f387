"""Per-region denominators from the Census Data API (ACS)."""

from __future__ import annotations

import os
from pathlib import Path

from tract_rates.common.cache import cache_key, cache_path, cached_fetch
from tract_rates.common.errors import ConfigError, NetworkFetchError
from tract_rates.common.http import HttpClient
from tract_rates.common.schema import validate_filters


def _region_geography(region_type: str, denominator_config: dict) -> dict:
    geography = denominator_config["region_types"].get(region_type)
    if geography is None:
        raise ConfigError(f"No Census geography configured for region type {region_type!r}")
    return geography


def parse_estimate(value: object) -> float | None:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # ACS encodes annotations (-666666666, -999999999, ...) as negative estimates.
    if number < 0:
        return None
    return number


def build_query_params(variable: str, filters: dict[str, str], geography: dict, api_key: str | None) -> dict[str, str]:
    clean = validate_filters(filters, ctx="denominator filters")
    in_clauses = [f"{name}:{value}" for name, value in clean.items()]
    in_clauses.extend(geography.get("extra_in") or [])
    params = {
        "get": f"NAME,{variable}",
        "for": f"{geography['geography']}:*",
        "in": " ".join(in_clauses),
    }
    if api_key:
        params["key"] = api_key
    return params


def parse_denominator_payload(payload: object, variable: str, key_columns: list[str]) -> dict[str, float | None]:
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
        raise NetworkFetchError("Census API payload is not a header-prefixed table")
    header = [str(column) for column in payload[0]]
    missing = [column for column in [variable, *key_columns] if column not in header]
    if missing:
        raise NetworkFetchError(f"Census API payload lacks columns: {', '.join(missing)}")

    index = {column: idx for idx, column in enumerate(header)}
    out: dict[str, float | None] = {}
    for row_number, row in enumerate(payload[1:], start=1):
        if not isinstance(row, list) or len(row) != len(header):
            raise NetworkFetchError(f"Census API row {row_number} does not match the header width {len(header)}")
        region_key = "".join(str(row[index[column]]) for column in key_columns)
        out[region_key] = parse_estimate(row[index[variable]])
    return out


def fetch_denominators(
    region_type: str,
    variable: str,
    filters: dict[str, str],
    denominator_config: dict,
    *,
    http_client: HttpClient,
) -> dict[str, float | None]:
    geography = _region_geography(region_type, denominator_config)
    api_key_env = denominator_config.get("api_key_env")
    api_key = os.environ.get(api_key_env) if api_key_env else None
    url = f"{denominator_config['base_url'].rstrip('/')}/{denominator_config['year']}/{denominator_config['dataset']}"

    payload = http_client.get_json(
        url,
        source_type="census",
        params=build_query_params(variable, filters, geography, api_key),
    )
    return parse_denominator_payload(payload, variable, list(geography["key_columns"]))


def load_denominators(
    region_type: str,
    variable: str,
    filters: dict[str, str],
    denominator_config: dict,
    data_dir: Path,
    *,
    http_client: HttpClient,
) -> tuple[dict[str, float | None], bool]:
    """Fetch denominators through the on-disk cache; returns ``(mapping, cache_hit)``."""
    key = cache_key(region_type, variable, denominator_config["year"], denominator_config["dataset"], filters=filters)
    path = cache_path(data_dir, "denominators", key)
    return cached_fetch(
        path,
        lambda: fetch_denominators(region_type, variable, filters, denominator_config, http_client=http_client),
        encode=lambda values: {"region_type": region_type, "variable": variable, "values": values},
        decode=lambda payload: dict(payload["values"]),
    )
