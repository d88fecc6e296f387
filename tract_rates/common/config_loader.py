"""Configuration loading and validation."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tract_rates.common.errors import ConfigError
from tract_rates.common.fs import read_yaml
from tract_rates.common.models import UnassignedPolicy
from tract_rates.common.schema import validate_pipeline_config

CONFIG_FILENAME = "pipeline.yml"


@dataclass(frozen=True)
class PipelineConfig:
    input: dict
    boundaries: dict
    denominator: dict
    join: dict
    aggregate: dict
    http: dict
    output: dict

    @property
    def region_type(self) -> str:
        return self.boundaries["region_type"]

    @property
    def filters(self) -> dict[str, str]:
        return dict(self.boundaries["filters"])

    @property
    def scale(self) -> float:
        return float(self.aggregate["scale"])

    @property
    def unassigned_policy(self) -> UnassignedPolicy:
        return UnassignedPolicy(self.aggregate["unassigned"])

    @property
    def strict_join(self) -> bool:
        return bool(self.join.get("strict", False))


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    return _deep_merge(base, overlay)


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> PipelineConfig:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    raw = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    cfg = validate_pipeline_config(raw, allow_unknown=allow_unknown)
    return PipelineConfig(
        input=cfg["input"],
        boundaries=cfg["boundaries"],
        denominator=cfg["denominator"],
        join=cfg["join"],
        aggregate=cfg["aggregate"],
        http=cfg["http"],
        output=cfg["output"],
    )


def with_overrides(config: PipelineConfig, **sections: dict) -> PipelineConfig:
    """Return a new config with the given sections deep-merged in."""
    merged = {
        name: _deep_merge(copy.deepcopy(getattr(config, name)), sections.get(name) or {})
        for name in ("input", "boundaries", "denominator", "join", "aggregate", "http", "output")
    }
    return PipelineConfig(**validate_pipeline_config(merged))
