"""Scenario data structures interpreted by the executor."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from scenario_harness.errors import ConfigError

ActionType = Literal[
    "navigate",
    "click",
    "fill",
    "select",
    "wait",
    "register_dialog_handler",
    "register_download_listener",
]

ConditionType = Literal["element_visible", "element_hidden", "network_idle"]

AssertionType = Literal[
    "title_matches",
    "text_equals",
    "text_not_equals",
    "text_contains",
    "has_class",
    "is_visible",
    "count_greater_than",
    "css_property_equals",
    "download_filename_matches",
    "console_errors_excluding",
]


class Action(BaseModel):
    action_type: ActionType
    selector: Optional[str] = None
    # URL for navigate, text for fill, option for select,
    # accept/dismiss for register_dialog_handler, visible/hidden for wait
    value: Optional[str] = None
    timeout_ms: Optional[int] = None
    description: str = ""


class WaitCondition(BaseModel):
    condition_type: ConditionType
    selector: Optional[str] = None
    timeout_ms: Optional[int] = None
    description: str = ""


class Assertion(BaseModel):
    assertion_type: AssertionType
    selector: Optional[str] = None
    expected_value: Optional[str] = None  # text, regex pattern, class name or css value
    property_name: Optional[str] = None  # css_property_equals only
    count: Optional[int] = None  # count_greater_than only
    ignore_patterns: list[str] = Field(default_factory=list)
    max_allowed: int = 0
    description: str = ""


class Scenario(BaseModel):
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    steps: list[Action] = Field(default_factory=list)
    waits: list[WaitCondition] = Field(default_factory=list)
    assertions: list[Assertion] = Field(default_factory=list)
    timeout_ms: Optional[int] = None  # total budget per attempt


class ScenarioSuite(BaseModel):
    """A named group of scenarios sharing the same leading steps."""

    name: str
    before_each: list[Action] = Field(default_factory=list)
    scenarios: list[Scenario] = Field(default_factory=list)

    def steps_for(self, scenario: Scenario) -> list[Action]:
        """Full ordered action list for one scenario."""
        return [*self.before_each, *scenario.steps]

    def filter(self, grep: Optional[str]) -> "ScenarioSuite":
        """Keep only scenarios whose name or tags contain ``grep`` (case-insensitive)."""
        if not grep:
            return self
        needle = grep.lower()
        kept = [
            s for s in self.scenarios
            if needle in s.name.lower() or any(needle in t.lower() for t in s.tags)
        ]
        return self.model_copy(update={"scenarios": kept})

    @classmethod
    def load(cls, path: str | Path) -> "ScenarioSuite":
        """Load a suite from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Suite file not found: {path}")
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid suite file {path}: {e}") from e

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
