"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from tract_rates.common.fs import write_json
from tract_rates.common.models import AggregationResult, JoinedRecord


def build_run_report(
    *,
    run_id: str,
    region_type: str,
    filters: dict[str, str],
    joined: Sequence[JoinedRecord],
    result: AggregationResult,
    cache_hits: dict[str, bool],
    outputs: dict[str, str],
) -> dict:
    assigned = sum(1 for record in joined if record.is_assigned)
    null_denominators = sorted(r.region_key for r in result.records if r.rate is None)

    warnings: list[str] = []
    if result.unmatched:
        warnings.append("UNMATCHED_REGIONS_PRESENT")
    if result.unassigned_count:
        warnings.append("UNASSIGNED_POINTS_PRESENT")
    if null_denominators:
        warnings.append("NULL_DENOMINATORS_PRESENT")

    return {
        "run_id": run_id,
        "status": "partial" if warnings else "success",
        "region_type": region_type,
        "filters": filters,
        "scale": result.scale,
        "counts": {
            "points_in": len(joined),
            "assigned": assigned,
            "unassigned": result.unassigned_count,
            "regions": len(result.records),
            "regions_with_events": sum(1 for r in result.records if r.event_count > 0),
            "unmatched_regions": len(result.unmatched),
        },
        "warnings": warnings,
        "diagnostics": {
            "unmatched_region_keys": [r.region_key for r in result.unmatched],
            "null_denominator_region_keys": null_denominators,
            "cache_hits": cache_hits,
        },
        "outputs": outputs,
    }


def write_run_report(data_dir: Path, report: dict) -> Path:
    report_path = data_dir / "out" / "reports" / f"{report['run_id']}_report.json"
    write_json(report_path, report)
    return report_path
