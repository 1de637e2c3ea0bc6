"""Execution result data structures produced by the executor."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from scenario_harness.models.config import BrowserTarget

Outcome = Literal["passed", "failed", "retried"]


class Artifacts(BaseModel):
    screenshot_path: Optional[str] = None
    video_path: Optional[str] = None
    download_paths: list[str] = Field(default_factory=list)
    console_log_path: Optional[str] = None


class StepResult(BaseModel):
    """Result of executing a single action or wait condition."""
    step_index: int
    step_type: str  # action_type or condition_type
    selector: Optional[str] = None
    value: Optional[str] = None
    description: str = ""
    status: str = "pass"  # pass, fail
    error_message: Optional[str] = None


class AssertionResult(BaseModel):
    """Result of evaluating a single assertion."""
    assertion_type: str
    selector: Optional[str] = None
    expected_value: Optional[str] = None
    description: str = ""
    passed: bool = False
    actual_value: Optional[str] = None
    message: str = ""


class AttemptRecord(BaseModel):
    attempt: int
    passed: bool
    duration_seconds: float = 0.0
    failure_reason: Optional[str] = None
    error_type: Optional[str] = None
    step_results: list[StepResult] = Field(default_factory=list)
    wait_results: list[StepResult] = Field(default_factory=list)
    assertion_results: list[AssertionResult] = Field(default_factory=list)
    artifacts: Artifacts = Field(default_factory=Artifacts)


class ExecutionResult(BaseModel):
    scenario_name: str
    target: BrowserTarget
    outcome: Outcome
    attempts: int
    duration_seconds: float = 0.0
    failure_reason: Optional[str] = None
    error_type: Optional[str] = None
    artifacts: Optional[Artifacts] = None
    attempt_records: list[AttemptRecord] = Field(default_factory=list)


class RunResult(BaseModel):
    run_id: str
    suite_name: str
    started_at: str
    completed_at: str
    base_url: str
    total: int = 0
    passed: int = 0
    failed: int = 0
    retried: int = 0
    duration_seconds: float = 0.0
    results: list[ExecutionResult] = Field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0
