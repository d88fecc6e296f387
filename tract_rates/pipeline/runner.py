"""Pipeline orchestration: load, fetch, join, aggregate, export."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from tract_rates.common.config_loader import PipelineConfig
from tract_rates.common.errors import PipelineError
from tract_rates.common.http import HttpClient
from tract_rates.common.logging import log_event
from tract_rates.common.models import (
    AggregationResult,
    JoinedRecord,
    PointRecord,
    PolygonRecord,
)
from tract_rates.common.time_utils import elapsed_ms
from tract_rates.harvest.boundaries import load_boundaries
from tract_rates.harvest.denominators import load_denominators
from tract_rates.pipeline.aggregate import aggregate_rates
from tract_rates.pipeline.coordinates import declared_crs
from tract_rates.pipeline.export import write_aggregates_csv, write_aggregates_geojson
from tract_rates.pipeline.loader import load_event_csv
from tract_rates.pipeline.reports import build_run_report, write_run_report
from tract_rates.pipeline.spatial_join import spatial_join


@dataclass(frozen=True)
class ReferenceData:
    polygons: tuple[PolygonRecord, ...]
    denominators: dict[str, float | None]
    cache_hits: dict[str, bool]


@dataclass(frozen=True)
class PipelineResult:
    points: tuple[PointRecord, ...]
    reference: ReferenceData
    joined: tuple[JoinedRecord, ...]
    aggregation: AggregationResult
    report: dict
    report_path: Path


class StageLog:
    def __init__(self) -> None:
        self.rows_out: int | None = None


@contextmanager
def stage_logging(logger: logging.Logger, run_id: str, stage: str, **fields) -> Iterator[StageLog]:
    started = time.monotonic()
    record = StageLog()
    log_event(logger, f"{stage} start", run_id=run_id, stage=stage, event="STAGE_START", status="ok", **fields)
    try:
        yield record
    except PipelineError as exc:
        log_event(
            logger,
            f"{stage} failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            stage=stage,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
            duration_ms=elapsed_ms(started),
            **fields,
        )
        raise
    log_event(
        logger,
        f"{stage} end",
        run_id=run_id,
        stage=stage,
        event="STAGE_END",
        status="ok",
        duration_ms=elapsed_ms(started),
        rows_out=record.rows_out,
        **fields,
    )


def fetch_reference_data(
    config: PipelineConfig,
    data_dir: Path,
    *,
    http_client: HttpClient,
    logger: logging.Logger,
    run_id: str,
) -> ReferenceData:
    """Fetch (or read from cache) boundaries and denominators, once each."""
    region_type = config.region_type
    filters = config.filters

    with stage_logging(logger, run_id, "boundaries", region_type=region_type, source="tigerweb") as stage:
        polygons, boundaries_hit = load_boundaries(
            region_type,
            filters,
            config.boundaries,
            data_dir,
            http_client=http_client,
        )
        stage.rows_out = len(polygons)

    with stage_logging(logger, run_id, "denominators", region_type=region_type, source="census") as stage:
        denominators, denominators_hit = load_denominators(
            region_type,
            config.denominator["variable"],
            filters,
            config.denominator,
            data_dir,
            http_client=http_client,
        )
        stage.rows_out = len(denominators)

    return ReferenceData(
        polygons=polygons,
        denominators=denominators,
        cache_hits={"boundaries": boundaries_hit, "denominators": denominators_hit},
    )


def run_pipeline(
    config: PipelineConfig,
    data_dir: Path,
    *,
    http_client: HttpClient,
    logger: logging.Logger,
    run_id: str,
) -> PipelineResult:
    with stage_logging(logger, run_id, "load", source="csv") as stage:
        points = load_event_csv(Path(config.input["path"]), config.input)
        stage.rows_out = len(points)

    reference = fetch_reference_data(config, data_dir, http_client=http_client, logger=logger, run_id=run_id)

    with stage_logging(logger, run_id, "join", region_type=config.region_type, rows_in=len(points)) as stage:
        joined = spatial_join(
            points,
            reference.polygons,
            points_crs=config.input["crs"],
            polygons_crs=declared_crs(reference.polygons, config.boundaries["default_crs"]),
            target_crs=config.join["target_crs"],
            strict=config.strict_join,
        )
        stage.rows_out = sum(1 for record in joined if record.is_assigned)

    with stage_logging(logger, run_id, "aggregate", region_type=config.region_type, rows_in=len(joined)) as stage:
        aggregation = aggregate_rates(
            joined,
            reference.denominators,
            reference.polygons,
            scale=config.scale,
            unassigned=config.unassigned_policy,
        )
        stage.rows_out = len(aggregation.records)

    out_dir = data_dir / "out"
    with stage_logging(logger, run_id, "export") as stage:
        csv_path = write_aggregates_csv(aggregation, out_dir / config.output["aggregates_filename"])
        geojson_path = write_aggregates_geojson(aggregation, out_dir / config.output["geojson_filename"])
        stage.rows_out = len(aggregation.all_records())

    report = build_run_report(
        run_id=run_id,
        region_type=config.region_type,
        filters=config.filters,
        joined=joined,
        result=aggregation,
        cache_hits=reference.cache_hits,
        outputs={"aggregates_csv": str(csv_path), "geojson": str(geojson_path)},
    )
    report_path = write_run_report(data_dir, report)
    for warning in report["warnings"]:
        log_event(logger, warning.lower().replace("_", " "), level=logging.WARNING, run_id=run_id, event=warning, status="warn")

    return PipelineResult(
        points=points,
        reference=reference,
        joined=joined,
        aggregation=aggregation,
        report=report,
        report_path=report_path,
    )
