"""Error taxonomy for the harness.

Run-level errors (configuration, SUT boot) abort the whole run. Scenario-level
errors are caught by the executor and turned into a failed attempt.
"""

from __future__ import annotations

from typing import Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigError(HarnessError):
    """The run configuration is missing or inconsistent."""


class BootError(HarnessError):
    """The system under test could not be brought up."""


class BootTimeoutError(BootError):
    """The SUT port never accepted connections within the boot budget."""


class BootProcessError(BootError):
    """The SUT process exited before its port became ready."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ScenarioError(HarnessError):
    """Base for failures local to one scenario attempt."""


class ActionError(ScenarioError):
    """A UI action could not be performed."""

    def __init__(self, message: str, action_type: str = "", selector: Optional[str] = None):
        super().__init__(message)
        self.action_type = action_type
        self.selector = selector


class WaitTimeoutError(ScenarioError):
    """A wait condition did not become true within its budget."""

    def __init__(self, message: str, timeout_ms: Optional[int] = None):
        super().__init__(message)
        self.timeout_ms = timeout_ms


class NoDownloadObservedError(WaitTimeoutError):
    """No download event was observed within the wait budget."""


class ScenarioTimeoutError(ScenarioError):
    """The attempt exceeded its total time budget and was cancelled."""


class ScenarioAssertionError(ScenarioError, AssertionError):
    """An expectation did not hold. Carries what was checked and what was seen."""

    def __init__(
        self,
        message: str,
        selector: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ):
        super().__init__(message)
        self.selector = selector
        self.expected = expected
        self.actual = actual
