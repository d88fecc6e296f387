"""Turn event CSV rows into point records."""

from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import Any, Iterable, Mapping

from tract_rates.common.errors import MalformedInputError
from tract_rates.common.fs import read_csv_dicts
from tract_rates.common.models import PointRecord


def _coordinate(row: Mapping[str, Any], column: str, row_number: int) -> float:
    value = row.get(column)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MalformedInputError(f"Row {row_number}: missing coordinate {column!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"Row {row_number}: non-numeric coordinate {column}={value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise MalformedInputError(f"Row {row_number}: non-finite coordinate {column}={value!r}")
    return number


def load_points(
    rows: Iterable[Mapping[str, Any]],
    *,
    x_column: str,
    y_column: str,
    crs: str,
) -> tuple[PointRecord, ...]:
    """Build one point per row, in input order.

    Coordinate ranges are not checked here; an out-of-range value surfaces
    when it is reprojected.
    """
    points = []
    for row_number, row in enumerate(rows, start=1):
        x = _coordinate(row, x_column, row_number)
        y = _coordinate(row, y_column, row_number)
        attributes = {k: v for k, v in row.items() if k not in (x_column, y_column)}
        points.append(PointRecord(x=x, y=y, crs=crs, attributes=attributes))
    return tuple(points)


def read_event_rows(path: Path, *, x_column: str, y_column: str) -> list[dict]:
    if not path.exists():
        raise MalformedInputError(f"Missing event CSV: {path}")
    try:
        header, rows = read_csv_dicts(path)
    except (UnicodeDecodeError, csv.Error) as exc:
        raise MalformedInputError(f"Event CSV {path} is unreadable: {exc}") from exc
    missing = [column for column in (x_column, y_column) if column not in header]
    if missing:
        raise MalformedInputError(f"Event CSV {path} lacks coordinate columns: {', '.join(missing)}")
    return rows


def load_event_csv(path: Path, input_config: dict) -> tuple[PointRecord, ...]:
    rows = read_event_rows(path, x_column=input_config["x_column"], y_column=input_config["y_column"])
    return load_points(
        rows,
        x_column=input_config["x_column"],
        y_column=input_config["y_column"],
        crs=input_config["crs"],
    )
