"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from scenario_harness.executor.context import BrowsingContext
from scenario_harness.executor.evidence_collector import EvidenceCollector
from scenario_harness.models.config import BootConfig, BrowserTarget, RunConfiguration
from scenario_harness.models.result import (
    Artifacts,
    AssertionResult,
    AttemptRecord,
    ExecutionResult,
    RunResult,
    StepResult,
)
from scenario_harness.models.scenario import Action, Assertion, Scenario, ScenarioSuite


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def run_config(tmp_path: Path) -> RunConfiguration:
    """A configuration pointing at localhost:8000 with artifacts under tmp_path."""
    return RunConfiguration(
        base_url="http://localhost:8000",
        default_timeout_ms=30000,
        retries=2,
        boot=BootConfig(command="python3 -m http.server 8000", ready_port=8000,
                        reuse_if_running=True),
        artifacts_dir=str(tmp_path / "artifacts"),
        report_output_dir=str(tmp_path / "reports"),
    )


@pytest.fixture
def chromium() -> BrowserTarget:
    return BrowserTarget(name="chromium", engine="chromium")


# ============================================================================
# Scenario Fixtures
# ============================================================================


@pytest.fixture
def scenario() -> Scenario:
    return Scenario(
        name="sign in shows main section",
        steps=[
            Action(action_type="register_dialog_handler", value="accept"),
            Action(action_type="click", selector="#signIn"),
        ],
        assertions=[Assertion(assertion_type="is_visible", selector="#mainSection")],
    )


@pytest.fixture
def suite(scenario: Scenario) -> ScenarioSuite:
    return ScenarioSuite(
        name="Demo",
        before_each=[Action(action_type="navigate", value="/")],
        scenarios=[scenario],
    )


# ============================================================================
# Result Fixtures
# ============================================================================


@pytest.fixture
def failed_result(chromium: BrowserTarget) -> ExecutionResult:
    record = AttemptRecord(
        attempt=1,
        passed=False,
        failure_reason="Total emails populated: Expected text other than '0', got '0'",
        error_type="ScenarioAssertionError",
        step_results=[StepResult(step_index=0, step_type="click", selector="#signIn")],
        assertion_results=[
            AssertionResult(assertion_type="text_not_equals", selector="#totalEmails",
                            expected_value="≠0", actual_value="0", passed=False,
                            message="Expected text other than '0', got '0'"),
        ],
        artifacts=Artifacts(screenshot_path="/tmp/does-not-exist.png"),
    )
    return ExecutionResult(
        scenario_name="demo data loads",
        target=chromium,
        outcome="failed",
        attempts=1,
        failure_reason=record.failure_reason,
        error_type=record.error_type,
        artifacts=record.artifacts,
        attempt_records=[record],
    )


@pytest.fixture
def run_result(failed_result: ExecutionResult, chromium: BrowserTarget) -> RunResult:
    passed = ExecutionResult(
        scenario_name="page loads successfully", target=chromium, outcome="passed", attempts=1,
        attempt_records=[AttemptRecord(attempt=1, passed=True)],
    )
    return RunResult(
        run_id="run_abc12345",
        suite_name="Gmail Storage Analyzer",
        started_at="2025-01-01T00:00:00Z",
        completed_at="2025-01-01T00:01:00Z",
        base_url="http://localhost:8000",
        total=2,
        passed=1,
        failed=1,
        duration_seconds=60.0,
        results=[passed, failed_result],
    )


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock()
    page.url = "http://localhost:8000/"
    page.on = Mock()  # sync callback registration
    page.remove_listener = Mock()
    page.video = None
    return page


@pytest.fixture
def mock_context() -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock()
    context.set_default_timeout = Mock()
    return context


@pytest.fixture
def browsing_context(mock_context, mock_page, run_config, tmp_path) -> BrowsingContext:
    """A BrowsingContext wired to mocks, as the executor would pass it to steps."""
    collector = EvidenceCollector(tmp_path / "evidence")
    return BrowsingContext(mock_context, mock_page, collector, run_config)
