"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from tract_rates.common.errors import ConfigError
from tract_rates.common.models import UnassignedPolicy

TOP_LEVEL_KEYS = {
    "input",
    "boundaries",
    "denominator",
    "join",
    "aggregate",
    "http",
    "output",
}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"Expected a mapping for {ctx}")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_filters(filters: dict, ctx: str = "boundaries.filters") -> dict[str, str]:
    if not isinstance(filters, dict) or not filters:
        raise ConfigError(f"{ctx} must be a non-empty mapping")
    out: dict[str, str] = {}
    for name, value in filters.items():
        text = str(value).strip()
        # Filter values end up inside an ArcGIS WHERE clause.
        if not text.isdigit():
            raise ConfigError(f"{ctx}.{name} must be a FIPS digit string, got {value!r}")
        out[str(name)] = text
    return out


def _validate_input(cfg: dict, allow_unknown: bool) -> None:
    required = {"path", "x_column", "y_column", "crs"}
    _assert_required_keys(cfg, required, "input")
    _assert_no_unknown_keys(cfg, required, "input", allow_unknown)
    if cfg["x_column"] == cfg["y_column"]:
        raise ConfigError("input.x_column and input.y_column must differ")


def _validate_boundaries(cfg: dict, allow_unknown: bool) -> None:
    required = {"region_type", "filters", "service_url", "default_crs", "region_types"}
    known = required | {"out_sr", "id_chunk_size"}
    _assert_required_keys(cfg, required, "boundaries")
    _assert_no_unknown_keys(cfg, known, "boundaries", allow_unknown)
    cfg["filters"] = validate_filters(cfg["filters"])

    region_types = cfg["region_types"]
    if not isinstance(region_types, dict) or cfg["region_type"] not in region_types:
        raise ConfigError(f"boundaries.region_types has no entry for {cfg['region_type']!r}")
    for name, layer in region_types.items():
        ctx = f"boundaries.region_types.{name}"
        _assert_required_keys(layer, {"layer_id", "key_field", "filter_fields"}, ctx)
        missing = set(cfg["filters"]) - set(layer["filter_fields"])
        if name == cfg["region_type"] and missing:
            raise ConfigError(f"{ctx}.filter_fields has no field for: {', '.join(sorted(missing))}")


def _validate_denominator(cfg: dict, region_type: str, allow_unknown: bool) -> None:
    required = {"base_url", "year", "dataset", "variable", "region_types"}
    known = required | {"api_key_env"}
    _assert_required_keys(cfg, required, "denominator")
    _assert_no_unknown_keys(cfg, known, "denominator", allow_unknown)
    region_types = cfg["region_types"]
    if not isinstance(region_types, dict) or region_type not in region_types:
        raise ConfigError(f"denominator.region_types has no entry for {region_type!r}")
    for name, geography in region_types.items():
        ctx = f"denominator.region_types.{name}"
        _assert_required_keys(geography, {"geography", "key_columns"}, ctx)
        if not geography["key_columns"]:
            raise ConfigError(f"{ctx}.key_columns must be a non-empty list")


def _validate_join(cfg: dict, allow_unknown: bool) -> None:
    _assert_required_keys(cfg, {"target_crs"}, "join")
    _assert_no_unknown_keys(cfg, {"target_crs", "strict"}, "join", allow_unknown)
    if not isinstance(cfg.get("strict", False), bool):
        raise ConfigError("join.strict must be true or false")


def _validate_aggregate(cfg: dict, allow_unknown: bool) -> None:
    _assert_required_keys(cfg, {"scale", "unassigned"}, "aggregate")
    _assert_no_unknown_keys(cfg, {"scale", "unassigned"}, "aggregate", allow_unknown)
    try:
        scale = float(cfg["scale"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"aggregate.scale must be numeric, got {cfg['scale']!r}") from exc
    if scale <= 0:
        raise ConfigError("aggregate.scale must be positive")
    allowed = {policy.value for policy in UnassignedPolicy}
    if cfg["unassigned"] not in allowed:
        raise ConfigError(f"aggregate.unassigned must be one of: {', '.join(sorted(allowed))}")


def _validate_output(cfg: dict, allow_unknown: bool) -> None:
    required = {"aggregates_filename", "geojson_filename"}
    _assert_required_keys(cfg, required, "output")
    _assert_no_unknown_keys(cfg, required, "output", allow_unknown)


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, TOP_LEVEL_KEYS - {"http"}, "pipeline config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "pipeline config", allow_unknown)
    cfg.setdefault("http", {})

    _validate_input(cfg["input"], allow_unknown)
    _validate_boundaries(cfg["boundaries"], allow_unknown)
    _validate_denominator(cfg["denominator"], cfg["boundaries"]["region_type"], allow_unknown)
    _validate_join(cfg["join"], allow_unknown)
    _validate_aggregate(cfg["aggregate"], allow_unknown)
    _validate_output(cfg["output"], allow_unknown)
    return cfg
