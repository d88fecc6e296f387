import pytest
from pyproj import Transformer

from tract_rates.common.errors import StageError, UnknownCRSError
from tract_rates.common.models import PointRecord, PolygonRecord
from tract_rates.pipeline.coordinates import (
    build_transformer,
    declared_crs,
    reproject_points,
    reproject_polygons,
    reproject_xy,
    same_crs,
)


def test_identity_reprojection_returns_input_unchanged():
    points = (PointRecord(-86.79, 36.11, "EPSG:4326", {"id": "a"}),)

    assert reproject_points(points, "EPSG:4326", "EPSG:4326") == points
    assert reproject_xy(-86.79, 36.11, "EPSG:4326", "epsg:4326") == (-86.79, 36.11)
    assert build_transformer("EPSG:4326", 4326) is None


def test_reprojection_matches_pyproj_and_tags_target_crs():
    expected = Transformer.from_crs("EPSG:4326", "EPSG:5070", always_xy=True).transform(-86.79, 36.11)

    (projected,) = reproject_points([PointRecord(-86.79, 36.11, "EPSG:4326")], "EPSG:4326", "EPSG:5070")

    assert projected.crs == "EPSG:5070"
    assert projected.x == pytest.approx(expected[0])
    assert projected.y == pytest.approx(expected[1])


def test_reprojection_round_trip_is_within_tolerance():
    x, y = reproject_xy(-86.79, 36.11, "EPSG:4326", "EPSG:5070")
    back_x, back_y = reproject_xy(x, y, "EPSG:5070", "EPSG:4326")

    assert back_x == pytest.approx(-86.79, abs=1e-7)
    assert back_y == pytest.approx(36.11, abs=1e-7)


def test_reprojection_is_deterministic():
    first = reproject_xy(-86.79, 36.11, "EPSG:4326", "EPSG:3857")
    second = reproject_xy(-86.79, 36.11, "EPSG:4326", "EPSG:3857")
    assert first == second


@pytest.mark.parametrize("identifier", ["EPSG:999999", "not-a-crs"])
def test_unknown_crs_raises(identifier):
    with pytest.raises(UnknownCRSError):
        reproject_xy(0.0, 0.0, identifier, "EPSG:4326")
    with pytest.raises(UnknownCRSError):
        same_crs("EPSG:4326", identifier)


def test_out_of_range_latitude_fails_reprojection():
    with pytest.raises(StageError):
        reproject_xy(-86.0, 95.0, "EPSG:4326", "EPSG:5070")


def test_reproject_polygons_returns_new_records():
    polygon = PolygonRecord("A", (((0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0), (0.0, 0.0)),), "EPSG:4326")

    (projected,) = reproject_polygons([polygon], "EPSG:4326", "EPSG:3857")

    assert projected.crs == "EPSG:3857"
    assert projected.region_key == "A"
    assert polygon.crs == "EPSG:4326"
    assert projected.rings[0][2][0] == pytest.approx(111319.49, abs=0.01)


def test_declared_crs_rejects_mixed_inputs():
    a = PointRecord(0, 0, "EPSG:4326")
    b = PointRecord(0, 0, "EPSG:4269")

    assert declared_crs([a], "EPSG:3857") == "EPSG:4326"
    assert declared_crs([], "EPSG:3857") == "EPSG:3857"
    with pytest.raises(StageError):
        declared_crs([a, b], "EPSG:3857")
