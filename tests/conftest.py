from __future__ import annotations

import csv
from pathlib import Path

import pytest
import yaml

REPO_ROOT = Path(__file__).resolve().parents[1]

TRACT_A = "47037000100"
TRACT_B = "47037000200"
TRACT_EMPTY = "47037000300"


def square_ring(min_x: float, min_y: float, max_x: float, max_y: float) -> list[list[float]]:
    # Clockwise, as ArcGIS returns outer rings.
    return [[min_x, min_y], [min_x, max_y], [max_x, max_y], [max_x, min_y], [min_x, min_y]]


TRACT_FEATURES = [
    {
        "attributes": {"GEOID": TRACT_A, "NAME": "Census Tract 1", "STATE": "47", "COUNTY": "037"},
        "geometry": {"rings": [square_ring(-86.80, 36.10, -86.78, 36.12)], "spatialReference": {"wkid": 4269}},
    },
    {
        "attributes": {"GEOID": TRACT_B, "NAME": "Census Tract 2", "STATE": "47", "COUNTY": "037"},
        "geometry": {"rings": [square_ring(-86.78, 36.10, -86.76, 36.12)], "spatialReference": {"wkid": 4269}},
    },
    {
        "attributes": {"GEOID": TRACT_EMPTY, "NAME": "Census Tract 3", "STATE": "47", "COUNTY": "037"},
        "geometry": {"rings": [square_ring(-86.76, 36.10, -86.74, 36.12)], "spatialReference": {"wkid": 4269}},
    },
]

ACS_TABLE = [
    ["NAME", "B01003_001E", "state", "county", "tract"],
    ["Census Tract 1", "10", "47", "037", "000100"],
    ["Census Tract 2", "20", "47", "037", "000200"],
    ["Census Tract 3", "40", "47", "037", "000300"],
]

EVENT_ROWS = [
    {"event_id": "e1", "lon": "-86.79", "lat": "36.11"},
    {"event_id": "e2", "lon": "-86.795", "lat": "36.105"},
    {"event_id": "e3", "lon": "-86.77", "lat": "36.11"},
    {"event_id": "e4", "lon": "-86.50", "lat": "36.40"},
]


class FakeCensusClient:
    """Serves the TIGERweb and Census API calls the pipeline makes."""

    def __init__(self, features=None, table=None):
        self.features = TRACT_FEATURES if features is None else features
        self.table = ACS_TABLE if table is None else table
        self.calls: list[tuple[str, dict]] = []

    def get_json(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        if kwargs.get("source_type") == "census":
            return self.table
        params = kwargs.get("params") or {}
        if params.get("returnIdsOnly") == "true":
            return {"objectIdFieldName": "OBJECTID", "objectIds": list(range(1, len(self.features) + 1))}
        raise AssertionError(f"unexpected GET {url}")

    def post_form_json(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        wanted = [int(v) for v in kwargs["data"]["objectIds"].split(",")]
        return {
            "spatialReference": {"wkid": 4269},
            "features": [self.features[i - 1] for i in wanted],
        }

    def close(self):
        return None


class OfflineClient:
    def get_json(self, url: str, **_kwargs):
        raise AssertionError(f"network call to {url} while cache should be warm")

    def post_form_json(self, url: str, **_kwargs):
        raise AssertionError(f"network call to {url} while cache should be warm")

    def close(self):
        return None


def write_events_csv(path: Path, rows: list[dict] | None = None) -> Path:
    rows = EVENT_ROWS if rows is None else rows
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0]))
        writer.writeheader()
        writer.writerows(rows)
    return path


def write_config_dir(path: Path, events_path: Path, **section_overrides: dict) -> Path:
    with (REPO_ROOT / "config" / "pipeline.yml").open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    cfg["input"]["path"] = str(events_path)
    for section, values in section_overrides.items():
        cfg[section].update(values)
    path.mkdir(parents=True, exist_ok=True)
    with (path / "pipeline.yml").open("w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False)
    return path


@pytest.fixture
def fake_census_client():
    return FakeCensusClient()


@pytest.fixture
def pipeline_dirs(tmp_path: Path):
    events = write_events_csv(tmp_path / "in" / "events.csv")
    config_dir = write_config_dir(tmp_path / "config", events)
    return {"config_dir": config_dir, "data_dir": tmp_path / "data", "events": events}
