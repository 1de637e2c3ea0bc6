"""Tests for the command-line interface."""

import json
from unittest.mock import patch

from click.testing import CliRunner

from scenario_harness.cli import cli
from scenario_harness.errors import BootProcessError

ORCHESTRATOR = "scenario_harness.cli.Orchestrator"


def _results(run_result):
    return {"run_result": run_result, "reports": {"json": "/tmp/report.json"}, "duration": 1.0}


class TestRun:
    def test_failures_exit_one(self, run_result):
        runner = CliRunner()
        with runner.isolated_filesystem(), patch(ORCHESTRATOR) as orch_cls:
            orch_cls.return_value.run.return_value = _results(run_result)
            result = runner.invoke(cli, ["run"])
        assert result.exit_code == 1
        assert "1 failed" in result.output

    def test_all_passed_exit_zero(self, run_result):
        clean = run_result.model_copy(update={"failed": 0, "results": run_result.results[:1]})
        runner = CliRunner()
        with runner.isolated_filesystem(), patch(ORCHESTRATOR) as orch_cls:
            orch_cls.return_value.run.return_value = _results(clean)
            result = runner.invoke(cli, ["run"])
        assert result.exit_code == 0

    def test_overrides_reach_orchestrator(self, run_result):
        runner = CliRunner()
        with runner.isolated_filesystem(), patch(ORCHESTRATOR) as orch_cls:
            orch_cls.return_value.run.return_value = _results(run_result)
            runner.invoke(cli, ["run", "--browser", "webkit", "--retries", "0", "--grep", "export"])
        config = orch_cls.call_args[0][0]
        assert [t.name for t in config.browser_targets] == ["webkit"]
        assert config.retries == 0
        suite = orch_cls.return_value.run.call_args[0][0]
        assert [s.name for s in suite.scenarios] == ["export functionality works"]

    def test_unknown_browser_exit_two(self):
        runner = CliRunner()
        with runner.isolated_filesystem(), patch(ORCHESTRATOR) as orch_cls:
            result = runner.invoke(cli, ["run", "--browser", "opera"])
        assert result.exit_code == 2
        orch_cls.assert_not_called()

    def test_missing_explicit_config_exit_two(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["run", "--config", "nope.json"])
        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_boot_failure_exit_two(self):
        runner = CliRunner()
        with runner.isolated_filesystem(), patch(ORCHESTRATOR) as orch_cls:
            orch_cls.return_value.run.side_effect = BootProcessError("exited with code 1", returncode=1)
            result = runner.invoke(cli, ["run"])
        assert result.exit_code == 2
        assert "Could not start" in result.output

    def test_grep_without_matches(self):
        runner = CliRunner()
        with runner.isolated_filesystem(), patch(ORCHESTRATOR):
            result = runner.invoke(cli, ["run", "--grep", "no-such-scenario"])
        assert result.exit_code == 2


class TestList:
    def test_lists_builtin_suite(self):
        result = CliRunner().invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "12 scenarios" in result.output
        assert "export functionality works" in result.output


class TestInit:
    def test_writes_config(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init", "--base-url", "http://localhost:3000",
                                         "--export-suite", "suite.json"])
            assert result.exit_code == 0
            with open("harness-config.json") as f:
                data = json.load(f)
            with open("suite.json") as f:
                suite = json.load(f)
        assert data["base_url"] == "http://localhost:3000"
        assert data["boot"]["ready_port"] == 3000
        assert data["boot"]["command"] == "python3 -m http.server 3000"
        assert "reuse_if_running" not in data["boot"]
        assert len(suite["scenarios"]) == 12

    def test_invalid_url(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init", "--base-url", "localhost"])
        assert result.exit_code == 2
