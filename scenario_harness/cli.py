"""CLI entry point for the scenario harness."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from scenario_harness.errors import BootError, ConfigError
from scenario_harness.models.config import DEFAULT_CONFIG_FILE, RunConfiguration
from scenario_harness.models.scenario import ScenarioSuite
from scenario_harness.orchestrator import Orchestrator
from scenario_harness.suites.gmail_analyzer import build_suite
from scenario_harness.url_utils import port_from_url

console = Console()

EXIT_FAILED = 1
EXIT_HARNESS_ERROR = 2

_OUTCOME_STYLES = {"passed": "green", "retried": "yellow", "failed": "red"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> RunConfiguration:
    # The default file is optional; an explicitly named one is not.
    if path == DEFAULT_CONFIG_FILE and not Path(path).exists():
        return RunConfiguration.load(None)
    return RunConfiguration.load(path)


def _load_suite(path: Optional[str]) -> ScenarioSuite:
    return ScenarioSuite.load(path) if path else build_suite()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Browser scenario harness for the Gmail Storage Analyzer page."""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file path")
@click.option("--suite", "-s", "suite_file", default=None, help="Scenario suite JSON (default: built-in suite)")
@click.option("--browser", "-b", "browsers", multiple=True, help="Only run these browser targets")
@click.option("--retries", type=click.IntRange(min=0), default=None, help="Override retry count")
@click.option("--grep", "-g", default=None, help="Only run scenarios whose name or tag contains TEXT")
@click.option("--headed", is_flag=True, help="Show browser windows")
def run(
    config: str,
    suite_file: Optional[str],
    browsers: tuple[str, ...],
    retries: Optional[int],
    grep: Optional[str],
    headed: bool,
) -> None:
    """Run the scenario suite on every configured browser."""
    try:
        cfg = _load_config(config).with_overrides(
            retries=retries, browsers=list(browsers), headless=False if headed else None,
        )
        suite = _load_suite(suite_file).filter(grep)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(EXIT_HARNESS_ERROR)

    if not suite.scenarios:
        console.print("[yellow]No scenarios selected[/yellow]")
        sys.exit(EXIT_HARNESS_ERROR)

    try:
        results = Orchestrator(cfg).run(suite)
    except BootError as e:
        console.print(f"[red]Could not start the system under test:[/red] {e}")
        sys.exit(EXIT_HARNESS_ERROR)

    run_result = results["run_result"]
    table = Table(title=f"{run_result.suite_name} ({run_result.run_id})")
    table.add_column("Scenario", style="bold")
    table.add_column("Browser")
    table.add_column("Outcome")
    table.add_column("Attempts", justify="right")
    table.add_column("Failure / artifacts")
    for r in run_result.results:
        style = _OUTCOME_STYLES.get(r.outcome, "white")
        detail = ""
        if r.outcome == "failed":
            detail = f"{r.error_type}: {r.failure_reason}"
            if r.artifacts and r.artifacts.screenshot_path:
                detail += f"\n{r.artifacts.screenshot_path}"
            if r.artifacts and r.artifacts.video_path:
                detail += f"\n{r.artifacts.video_path}"
        table.add_row(r.scenario_name, r.target.name, f"[{style}]{r.outcome}[/{style}]",
                      str(r.attempts), detail)
    console.print(table)
    console.print(
        f"[green]{run_result.passed} passed[/green], [yellow]{run_result.retried} flaky[/yellow], "
        f"[red]{run_result.failed} failed[/red] in {results['duration']}s"
    )
    for fmt, path in results["reports"].items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")

    sys.exit(EXIT_FAILED if run_result.exit_code else 0)


@cli.command("list")
@click.option("--suite", "-s", "suite_file", default=None, help="Scenario suite JSON (default: built-in suite)")
def list_scenarios(suite_file: Optional[str]) -> None:
    """List the scenarios of a suite."""
    try:
        suite = _load_suite(suite_file)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_HARNESS_ERROR)
    console.print(f"[bold]{suite.name}[/bold] ({len(suite.scenarios)} scenarios)")
    for i, s in enumerate(suite.scenarios, 1):
        tags = f" [dim]({', '.join(s.tags)})[/dim]" if s.tags else ""
        console.print(f"  {i}. {s.name}{tags}")


@cli.command()
@click.option("--base-url", default="http://localhost:8000", help="URL the page is served at")
@click.option("--output", "-o", default=DEFAULT_CONFIG_FILE, help="Where to write the config")
@click.option("--export-suite", default=None, help="Also write the built-in suite as JSON here")
def init(base_url: str, output: str, export_suite: Optional[str]) -> None:
    """Create a default configuration file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    try:
        defaults = RunConfiguration.load(None)
        boot = defaults.boot.model_dump()
        port = port_from_url(base_url)
        if port is not None:
            boot["ready_port"] = port
            boot["command"] = f"python3 -m http.server {port}"
        boot.pop("reuse_if_running")
        cfg = RunConfiguration.load({"base_url": base_url, "boot": boot})
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_HARNESS_ERROR)

    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    if export_suite:
        build_suite().save(export_suite)
        console.print(f"[green]Wrote built-in suite to {export_suite}[/green]")
    console.print("\nRun the suite with:")
    console.print("  [blue]scenario-harness run[/blue]")


if __name__ == "__main__":
    cli()
