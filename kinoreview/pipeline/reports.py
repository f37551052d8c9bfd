"""Run report output."""

from __future__ import annotations

from pathlib import Path

from kinoreview.common.fs import write_json
from kinoreview.common.models import ConversionResult, ImportReport
from kinoreview.common.time_utils import utc_timestamp_iso


def write_run_summary(
    data_dir: Path,
    run_id: str,
    *,
    user_id: str,
    report: ImportReport | None = None,
    failed_result: ConversionResult | None = None,
    imported: int = 0,
) -> Path:
    if report is not None:
        payload = report.to_dict()
    else:
        failures = failed_result.failures if failed_result is not None else []
        payload = {
            "user_id": user_id,
            "status": "error",
            "total_imported": imported,
            "total_converted": 0,
            "failed": len(failures),
            "reviews": [],
            "failures": [failure.to_dict() for failure in failures],
        }

    payload["run_id"] = run_id
    payload["finished_at"] = utc_timestamp_iso()
    summary_path = data_dir / "out" / "reports" / f"{run_id}_summary.json"
    write_json(summary_path, payload)
    return summary_path
