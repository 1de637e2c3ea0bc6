"""Run configuration models for the harness."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from scenario_harness.errors import ConfigError
from scenario_harness.url_utils import port_from_url

DEFAULT_CONFIG_FILE = "harness-config.json"

Engine = Literal["chromium", "firefox", "webkit"]


def running_in_ci() -> bool:
    """True when the CI environment variable is set to a truthy value."""
    value = os.environ.get("CI", "")
    return value.strip().lower() not in ("", "0", "false", "no", "off")


class ViewportConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = 1280
    height: int = 720


class BrowserTarget(BaseModel):
    """One browser engine to run every scenario against."""

    model_config = ConfigDict(frozen=True)

    name: str
    engine: Engine


class ArtifactPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    screenshot_on_failure: bool = True
    video_on_failure: bool = True


class BootConfig(BaseModel):
    """How to bring up the system under test."""

    model_config = ConfigDict(frozen=True)

    command: str = "python3 -m http.server 8000"
    ready_port: int = 8000
    boot_timeout_ms: int = 120000
    reuse_if_running: bool = Field(default_factory=lambda: not running_in_ci())
    cwd: Optional[str] = None  # directory the command runs in, defaults to cwd

    @field_validator("ready_port")
    @classmethod
    def check_port_range(cls, v: int) -> int:
        if not 0 < v <= 65535:
            raise ValueError(f"ready_port must be in 1..65535, got {v}")
        return v

    @field_validator("boot_timeout_ms")
    @classmethod
    def check_boot_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("boot_timeout_ms must be positive")
        return v

    @field_validator("command")
    @classmethod
    def check_command(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("boot command must not be empty")
        return v


def _default_targets() -> list[BrowserTarget]:
    return [
        BrowserTarget(name="chromium", engine="chromium"),
        BrowserTarget(name="firefox", engine="firefox"),
        BrowserTarget(name="webkit", engine="webkit"),
    ]


class RunConfiguration(BaseModel):
    """Immutable settings for one run of the harness."""

    model_config = ConfigDict(frozen=True)

    # Target
    base_url: str = "http://localhost:8000"

    # Timing and retries
    default_timeout_ms: int = 30000
    scenario_timeout_ms: int = 90000
    retries: int = 2
    workers: int = 1  # parallel scenarios per browser engine

    # Browsers
    browser_targets: list[BrowserTarget] = Field(default_factory=_default_targets)
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)

    # SUT
    boot: BootConfig = Field(default_factory=BootConfig)

    # Artifacts and reporting
    artifact_policy: ArtifactPolicy = Field(default_factory=ArtifactPolicy)
    artifacts_dir: str = "test-results"
    report_formats: list[Literal["json", "html"]] = Field(default_factory=lambda: ["json", "html"])
    report_output_dir: str = "test-results/reports"

    @field_validator("default_timeout_ms", "scenario_timeout_ms")
    @classmethod
    def check_positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("retries")
    @classmethod
    def check_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retries must be >= 0")
        return v

    @field_validator("workers")
    @classmethod
    def check_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("workers must be >= 1")
        return v

    @field_validator("browser_targets")
    @classmethod
    def check_targets(cls, v: list[BrowserTarget]) -> list[BrowserTarget]:
        if not v:
            raise ValueError("at least one browser target is required")
        names = [t.name for t in v]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate browser target names: {names}")
        return v

    @model_validator(mode="after")
    def check_port_matches_base_url(self) -> "RunConfiguration":
        port = port_from_url(self.base_url)
        if port is None:
            raise ValueError(f"base_url is not a well-formed http(s) URL: {self.base_url!r}")
        if port != self.boot.ready_port:
            raise ValueError(
                f"boot.ready_port ({self.boot.ready_port}) does not match "
                f"the port of base_url ({port})"
            )
        return self

    @classmethod
    def load(cls, source: str | Path | dict[str, Any] | None = None) -> "RunConfiguration":
        """Build a configuration from declared defaults, a mapping, or a JSON file.

        Raises:
            ConfigError: if the file is missing or unreadable, or any constraint
                is violated.
        """
        if source is None:
            data: dict[str, Any] = {}
        elif isinstance(source, dict):
            data = source
        else:
            path = Path(source)
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            try:
                with open(path) as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"Could not read config {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config {path} must contain a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def with_overrides(
        self,
        retries: Optional[int] = None,
        browsers: Optional[list[str]] = None,
        headless: Optional[bool] = None,
    ) -> "RunConfiguration":
        """Return a re-validated copy with command-line overrides applied."""
        data = self.model_dump()
        if retries is not None:
            data["retries"] = retries
        if headless is not None:
            data["headless"] = headless
        if browsers:
            known = {t.name: t for t in self.browser_targets}
            unknown = [b for b in browsers if b not in known]
            if unknown:
                raise ConfigError(
                    f"Unknown browser target(s): {', '.join(unknown)} "
                    f"(configured: {', '.join(known)})"
                )
            data["browser_targets"] = [known[b].model_dump() for b in browsers]
        return RunConfiguration.load(data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file.

        An unset ``boot.reuse_if_running`` is left out so the CI environment
        decides it when the file is loaded.
        """
        exclude = None
        if "reuse_if_running" not in self.boot.model_fields_set:
            exclude = {"boot": {"reuse_if_running"}}
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(exclude=exclude), f, indent=2)
