"""Scenario executor — runs scenarios against browser engines using Playwright."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from scenario_harness.errors import (
    ScenarioAssertionError,
    ScenarioError,
    ScenarioTimeoutError,
)
from scenario_harness.models.config import BrowserTarget, RunConfiguration
from scenario_harness.models.result import (
    Artifacts,
    AssertionResult as AssertionResultModel,
    AttemptRecord,
    ExecutionResult,
    RunResult,
    StepResult,
)
from scenario_harness.models.scenario import Action, Assertion, Scenario, ScenarioSuite

from .action_runner import run_action
from .assertion_checker import check_assertion
from .context import BrowsingContext
from .waits import wait_for_condition

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "scenario"


def _expected_label(assertion: Assertion) -> Optional[str]:
    match assertion.assertion_type:
        case "text_not_equals":
            return f"≠{assertion.expected_value}"
        case "count_greater_than":
            return f">{assertion.count}"
        case "console_errors_excluding":
            return f"<={assertion.max_allowed}"
        case _:
            return assertion.expected_value


class Executor:
    """Executes scenario suites against one or more browser engines."""

    def __init__(self, config: RunConfiguration, run_dir: Path, run_id: str):
        self.config = config
        self.run_id = run_id
        self.run_dir = run_dir
        self.run_dir.mkdir(parents=True, exist_ok=True)

    async def run(
        self, suite: ScenarioSuite, targets: list[BrowserTarget] | None = None,
    ) -> RunResult:
        """Run every scenario of the suite on every target.

        Targets run in parallel, one browser process each. Within a target at
        most ``config.workers`` scenarios run at a time.
        """
        targets = targets or self.config.browser_targets
        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        start_time = time.time()
        logger.info("Starting suite '%s': %d scenario(s) x %d browser(s)",
                    suite.name, len(suite.scenarios), len(targets))

        async with async_playwright() as p:
            per_target = await asyncio.gather(
                *(self._run_target(p, suite, target) for target in targets)
            )

        results = [r for target_results in per_target for r in target_results]
        duration = time.time() - start_time
        run_result = RunResult(
            run_id=self.run_id,
            suite_name=suite.name,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            base_url=self.config.base_url,
            total=len(results),
            passed=sum(1 for r in results if r.outcome == "passed"),
            failed=sum(1 for r in results if r.outcome == "failed"),
            retried=sum(1 for r in results if r.outcome == "retried"),
            duration_seconds=round(duration, 2),
            results=results,
        )
        logger.info("Suite complete: %d passed, %d retried, %d failed (%.1fs)",
                    run_result.passed, run_result.retried, run_result.failed, duration)
        return run_result

    async def _run_target(
        self, p: Playwright, suite: ScenarioSuite, target: BrowserTarget,
    ) -> list[ExecutionResult]:
        logger.debug("Launching %s (%s)...", target.name, target.engine)
        try:
            browser = await getattr(p, target.engine).launch(headless=self.config.headless)
        except PlaywrightError as e:
            logger.error("Could not launch %s: %s", target.name, e.message)
            return [
                ExecutionResult(
                    scenario_name=s.name, target=target, outcome="failed", attempts=0,
                    failure_reason=f"Browser launch failed: {e.message}",
                    error_type="BrowserLaunchError",
                )
                for s in suite.scenarios
            ]

        semaphore = asyncio.Semaphore(self.config.workers)

        async def _run_one(scenario: Scenario) -> ExecutionResult:
            async with semaphore:
                return await self.execute(scenario, target, browser, before_each=suite.before_each)

        try:
            return list(await asyncio.gather(*(_run_one(s) for s in suite.scenarios)))
        finally:
            await browser.close()

    async def execute(
        self,
        scenario: Scenario,
        target: BrowserTarget,
        browser: Browser,
        before_each: list[Action] | None = None,
    ) -> ExecutionResult:
        """Run one scenario on one target, retrying failed attempts.

        Attempts are strictly sequential and each starts from a fresh context.
        """
        start = time.time()
        max_attempts = self.config.retries + 1
        records: list[AttemptRecord] = []

        for attempt in range(1, max_attempts + 1):
            logger.info("[%s] %s: attempt %d/%d", target.name, scenario.name, attempt, max_attempts)
            record = await self._run_attempt(scenario, target, browser, attempt, before_each or [])
            records.append(record)
            if record.passed:
                break
            if attempt < max_attempts:
                logger.warning("[%s] %s failed (%s), retrying",
                               target.name, scenario.name, record.failure_reason)

        last = records[-1]
        if last.passed:
            outcome = "passed" if len(records) == 1 else "retried"
        else:
            outcome = "failed"
        logger.info("[%s] [%s] %s (%d attempt(s))",
                    outcome.upper(), target.name, scenario.name, len(records))

        return ExecutionResult(
            scenario_name=scenario.name,
            target=target,
            outcome=outcome,
            attempts=len(records),
            duration_seconds=round(time.time() - start, 2),
            failure_reason=None if last.passed else last.failure_reason,
            error_type=None if last.passed else last.error_type,
            artifacts=None if last.passed else last.artifacts,
            attempt_records=records,
        )

    async def _run_attempt(
        self,
        scenario: Scenario,
        target: BrowserTarget,
        browser: Browser,
        attempt: int,
        before_each: list[Action],
    ) -> AttemptRecord:
        policy = self.config.artifact_policy
        attempt_dir = self.run_dir / target.name / slugify(scenario.name) / f"attempt-{attempt}"
        budget_ms = scenario.timeout_ms or self.config.scenario_timeout_ms
        record = AttemptRecord(attempt=attempt, passed=False)
        attempt_start = time.time()

        try:
            ctx = await BrowsingContext.open(
                browser, self.config, attempt_dir, record_video=policy.video_on_failure,
            )
        except PlaywrightError as e:
            logger.error("[%s] %s: could not open browser context: %s",
                         target.name, scenario.name, e.message)
            record.failure_reason = f"Could not open browser context: {e.message}"
            record.error_type = "PlaywrightError"
            record.duration_seconds = round(time.time() - attempt_start, 2)
            return record

        video_path: Optional[str] = None
        try:
            video_path = await ctx.video_path()
            try:
                await asyncio.wait_for(
                    self._run_steps(ctx, [*before_each, *scenario.steps], scenario, record),
                    timeout=budget_ms / 1000,
                )
                record.passed = True
            except asyncio.TimeoutError:
                err = ScenarioTimeoutError(f"Scenario exceeded its {budget_ms}ms budget")
                record.failure_reason = str(err)
                record.error_type = type(err).__name__
            except ScenarioError as e:
                record.failure_reason = str(e)
                record.error_type = type(e).__name__
            except PlaywrightError as e:
                logger.error("[%s] %s: browser error: %s", target.name, scenario.name, e.message)
                record.failure_reason = e.message
                record.error_type = "PlaywrightError"

            if not record.passed and policy.screenshot_on_failure:
                shot = await ctx.collector.take_screenshot(ctx.page)
                record.artifacts.screenshot_path = shot or None
            record.artifacts.download_paths = await ctx.save_downloads()
            record.artifacts.console_log_path = ctx.collector.save_logs()
        finally:
            await ctx.close()

        if video_path:
            if record.passed:
                Path(video_path).unlink(missing_ok=True)
            else:
                record.artifacts.video_path = video_path

        record.duration_seconds = round(time.time() - attempt_start, 2)
        return record

    async def _run_steps(
        self,
        ctx: BrowsingContext,
        actions: list[Action],
        scenario: Scenario,
        record: AttemptRecord,
    ) -> None:
        """Actions, then waits, then assertions, in declaration order. Raises on first failure."""
        for i, action in enumerate(actions):
            logger.debug("  Step %d/%d: %s %s", i + 1, len(actions), action.action_type,
                         action.description or action.selector or action.value or "")
            step = StepResult(
                step_index=i, step_type=action.action_type, selector=action.selector,
                value=action.value, description=action.description,
            )
            record.step_results.append(step)
            try:
                await run_action(ctx, action)
            except ScenarioError as e:
                step.status = "fail"
                step.error_message = str(e)
                raise

        for i, condition in enumerate(scenario.waits):
            step = StepResult(
                step_index=i, step_type=condition.condition_type,
                selector=condition.selector, description=condition.description,
            )
            record.wait_results.append(step)
            try:
                await wait_for_condition(ctx, condition)
            except ScenarioError as e:
                step.status = "fail"
                step.error_message = str(e)
                raise

        for i, assertion in enumerate(scenario.assertions):
            logger.debug("  Assertion %d/%d: %s %s", i + 1, len(scenario.assertions),
                         assertion.assertion_type,
                         assertion.description or assertion.selector or "")
            ar = AssertionResultModel(
                assertion_type=assertion.assertion_type,
                selector=assertion.selector,
                expected_value=_expected_label(assertion),
                description=assertion.description,
            )
            record.assertion_results.append(ar)
            try:
                result = await check_assertion(ctx, assertion)
            except ScenarioError as e:
                ar.message = str(e)
                raise
            ar.passed = result.passed
            ar.actual_value = result.actual
            ar.message = result.message
            if not result.passed:
                raise ScenarioAssertionError(
                    f"{assertion.description or assertion.assertion_type}: {result.message}",
                    selector=assertion.selector,
                    expected=ar.expected_value,
                    actual=result.actual,
                )
