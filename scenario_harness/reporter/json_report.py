"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from scenario_harness.models.result import RunResult


def generate_json_report(run_result: RunResult, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    report = run_result.model_dump()
    report["exit_code"] = run_result.exit_code
    report["failures"] = [
        {
            "scenario": r.scenario_name,
            "browser": r.target.name,
            "error_type": r.error_type,
            "failure_reason": r.failure_reason,
            "screenshot": r.artifacts.screenshot_path if r.artifacts else None,
            "video": r.artifacts.video_path if r.artifacts else None,
        }
        for r in run_result.results
        if r.outcome == "failed"
    ]

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
