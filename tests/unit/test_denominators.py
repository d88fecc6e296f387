from __future__ import annotations

from pathlib import Path

import pytest
from conftest import ACS_TABLE, TRACT_A, TRACT_B, TRACT_EMPTY, FakeCensusClient, OfflineClient

from tract_rates.common.errors import ConfigError, NetworkFetchError
from tract_rates.harvest.denominators import (
    build_query_params,
    fetch_denominators,
    load_denominators,
    parse_denominator_payload,
    parse_estimate,
)

DENOMINATOR_CONFIG = {
    "base_url": "https://api.census.example/data",
    "year": 2022,
    "dataset": "acs/acs5",
    "variable": "B01003_001E",
    "api_key_env": "TRACT_RATES_TEST_KEY",
    "region_types": {
        "tract": {"geography": "tract", "key_columns": ["state", "county", "tract"]},
        "block_group": {
            "geography": "block group",
            "key_columns": ["state", "county", "tract", "block group"],
            "extra_in": ["tract:*"],
        },
    },
}
FILTERS = {"state": "47", "county": "037"}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1234", 1234.0), ("0", 0.0), ("-666666666", None), ("", None), (None, None), ("n/a", None)],
)
def test_parse_estimate(raw, expected):
    assert parse_estimate(raw) == expected


def test_build_query_params_for_tracts():
    params = build_query_params("B01003_001E", FILTERS, DENOMINATOR_CONFIG["region_types"]["tract"], None)

    assert params == {"get": "NAME,B01003_001E", "for": "tract:*", "in": "state:47 county:037"}


def test_build_query_params_for_block_groups_with_key():
    params = build_query_params("B01003_001E", FILTERS, DENOMINATOR_CONFIG["region_types"]["block_group"], "k")

    assert params["for"] == "block group:*"
    assert params["in"] == "state:47 county:037 tract:*"
    assert params["key"] == "k"


def test_parse_payload_builds_geoid_keys():
    values = parse_denominator_payload(ACS_TABLE, "B01003_001E", ["state", "county", "tract"])

    assert values == {TRACT_A: 10.0, TRACT_B: 20.0, TRACT_EMPTY: 40.0}


@pytest.mark.parametrize(
    "payload",
    [
        {"error": "bad"},
        [],
        [["NAME", "state"]],
        "text",
        [ACS_TABLE[0], ["Census Tract 1", "10", "47"]],
    ],
)
def test_parse_payload_rejects_bad_shapes(payload):
    with pytest.raises(NetworkFetchError):
        parse_denominator_payload(payload, "B01003_001E", ["state", "county", "tract"])


def test_fetch_denominators_calls_census_api(monkeypatch):
    monkeypatch.setenv("TRACT_RATES_TEST_KEY", "secret")
    client = FakeCensusClient()

    values = fetch_denominators("tract", "B01003_001E", FILTERS, DENOMINATOR_CONFIG, http_client=client)

    assert values[TRACT_B] == 20.0
    url, kwargs = client.calls[0]
    assert url == "https://api.census.example/data/2022/acs/acs5"
    assert kwargs["params"]["key"] == "secret"
    assert kwargs["source_type"] == "census"


def test_fetch_denominators_without_key(monkeypatch):
    monkeypatch.delenv("TRACT_RATES_TEST_KEY", raising=False)
    client = FakeCensusClient()

    fetch_denominators("tract", "B01003_001E", FILTERS, DENOMINATOR_CONFIG, http_client=client)

    assert "key" not in client.calls[0][1]["params"]


def test_fetch_denominators_unknown_region_type():
    with pytest.raises(ConfigError):
        fetch_denominators("county", "B01003_001E", FILTERS, DENOMINATOR_CONFIG, http_client=FakeCensusClient())


def test_load_denominators_uses_cache(tmp_path: Path):
    first, hit = load_denominators(
        "tract", "B01003_001E", FILTERS, DENOMINATOR_CONFIG, tmp_path, http_client=FakeCensusClient()
    )
    assert hit is False

    second, hit = load_denominators(
        "tract", "B01003_001E", FILTERS, DENOMINATOR_CONFIG, tmp_path, http_client=OfflineClient()
    )
    assert hit is True
    assert second == first
