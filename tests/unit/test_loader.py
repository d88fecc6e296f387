from pathlib import Path

import pytest

from tract_rates.common.errors import MalformedInputError
from tract_rates.pipeline.loader import load_event_csv, load_points, read_event_rows


def test_load_points_preserves_order_and_attributes():
    rows = [
        {"id": "a", "lon": "-86.79", "lat": "36.11", "kind": "fire"},
        {"id": "b", "lon": "-86.77", "lat": "36.105", "kind": "ems"},
    ]

    points = load_points(rows, x_column="lon", y_column="lat", crs="EPSG:4326")

    assert [p.attributes["id"] for p in points] == ["a", "b"]
    assert points[0].x == -86.79
    assert points[0].y == 36.11
    assert points[0].crs == "EPSG:4326"
    assert "lon" not in points[0].attributes
    assert points[1].attributes["kind"] == "ems"


def test_load_points_does_not_validate_coordinate_range():
    points = load_points([{"x": "500", "y": "-400"}], x_column="x", y_column="y", crs="EPSG:4326")
    assert (points[0].x, points[0].y) == (500.0, -400.0)


@pytest.mark.parametrize(
    "row",
    [
        {"lat": "36.1"},
        {"lon": "", "lat": "36.1"},
        {"lon": "   ", "lat": "36.1"},
        {"lon": "west", "lat": "36.1"},
        {"lon": "-86.7", "lat": None},
        {"lon": "nan", "lat": "36.1"},
    ],
)
def test_load_points_rejects_missing_or_non_numeric_coordinates(row):
    with pytest.raises(MalformedInputError):
        load_points([row], x_column="lon", y_column="lat", crs="EPSG:4326")


def test_malformed_error_names_the_row():
    rows = [{"lon": "1", "lat": "2"}, {"lon": "x", "lat": "2"}]
    with pytest.raises(MalformedInputError, match="Row 2"):
        load_points(rows, x_column="lon", y_column="lat", crs="EPSG:4326")


def test_read_event_rows_requires_coordinate_columns(tmp_path: Path):
    path = tmp_path / "events.csv"
    path.write_text("id,longitude,lat\n1,-86.7,36.1\n", encoding="utf-8")

    with pytest.raises(MalformedInputError):
        read_event_rows(path, x_column="lon", y_column="lat")


def test_read_event_rows_rejects_non_utf8_file(tmp_path: Path):
    path = tmp_path / "events.csv"
    path.write_bytes(b"lon,lat,name\n-86.79,36.11,caf\xe9\n")

    with pytest.raises(MalformedInputError, match="events.csv"):
        read_event_rows(path, x_column="lon", y_column="lat")


def test_read_event_rows_missing_file(tmp_path: Path):
    with pytest.raises(MalformedInputError):
        read_event_rows(tmp_path / "nope.csv", x_column="lon", y_column="lat")


def test_load_event_csv_reads_rows(tmp_path: Path):
    path = tmp_path / "events.csv"
    path.write_text("id,lon,lat\n1,-86.79,36.11\n2,-86.77,36.11\n", encoding="utf-8")

    points = load_event_csv(path, {"x_column": "lon", "y_column": "lat", "crs": "EPSG:4326"})

    assert len(points) == 2
    assert points[1].attributes == {"id": "2"}
