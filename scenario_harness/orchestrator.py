"""Run orchestrator — boots the SUT, executes the suite on every target, writes reports."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from pathlib import Path

from scenario_harness.executor.executor import Executor
from scenario_harness.models.config import RunConfiguration
from scenario_harness.models.result import RunResult
from scenario_harness.models.scenario import ScenarioSuite
from scenario_harness.reporter.reporter import Reporter
from scenario_harness.server import ensure_running

logger = logging.getLogger(__name__)


class Orchestrator:
    """Coordinates one harness run.

    Configuration and boot errors propagate to the caller; scenario failures
    end up in the returned ``RunResult``.
    """

    def __init__(self, config: RunConfiguration):
        self.config = config
        self.run_id = f"run_{uuid.uuid4().hex[:8]}"
        self.run_dir = Path(config.artifacts_dir) / self.run_id

    def run(self, suite: ScenarioSuite) -> dict:
        """Execute the suite and generate reports."""
        return asyncio.run(self._run(suite))

    async def _run(self, suite: ScenarioSuite) -> dict:
        start = time.time()
        logger.info("=== Run %s: %s against %s ===", self.run_id, suite.name, self.config.base_url)

        async with ensure_running(self.config):
            executor = Executor(self.config, self.run_dir, self.run_id)
            run_result = await executor.run(suite)

        self._save_run_result(run_result)
        reports = Reporter(self.config).generate_reports(run_result)
        logger.info(Reporter.basic_summary(run_result))

        duration = time.time() - start
        logger.info("=== Run complete in %.1fs ===", duration)
        return {
            "run_result": run_result,
            "reports": reports,
            "duration": round(duration, 2),
        }

    def _save_run_result(self, run_result: RunResult) -> None:
        path = self.run_dir / "run_result.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Saving run result to %s", path)
        with open(path, "w") as f:
            json.dump(run_result.model_dump(), f, indent=2, default=str)
