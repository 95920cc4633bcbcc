"""CLI tests: every command and flag runs and exits with the right status."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from plancraft.cli import main
from plancraft.tasks.io import load_task_file
from plancraft.tasks.model import Task

SHOP = "Build a shop with login and payment"


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    from click.testing import CliRunner
    return CliRunner()


# ── Main entry and help ────────────────────────────────────────────────


class TestCliHelpAndVersion:
    """Basic entry: --help, --version, -h."""

    def test_help_long(self, cli_runner):
        r = cli_runner.invoke(main, ["--help"])
        assert r.exit_code == 0
        assert "analyze" in r.output
        assert "feasibility" in r.output

    def test_help_short(self, cli_runner):
        r = cli_runner.invoke(main, ["-h"])
        assert r.exit_code == 0

    def test_version(self, cli_runner):
        r = cli_runner.invoke(main, ["--version"])
        assert r.exit_code == 0
        assert "plancraft" in r.output
        assert "1.0.0" in r.output

    @pytest.mark.parametrize("command", ["analyze", "graph", "feasibility"])
    def test_subcommand_help(self, cli_runner, command):
        r = cli_runner.invoke(main, [command, "--help"])
        assert r.exit_code == 0


# ── analyze ────────────────────────────────────────────────────────────


class TestCliAnalyze:
    """plancraft analyze DESCRIPTION."""

    def test_text_report(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", SHOP])
        assert r.exit_code == 0, r.output
        assert "PLANCRAFT" in r.output
        assert ">>> Feasibility" in r.output
        assert ">>> Critical Path" in r.output

    def test_json_report(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", "--json", "--team-size", "3", "--deadline", "20", SHOP])
        assert r.exit_code == 0, r.output
        data = json.loads(r.stdout)
        assert data["errors"] == {}
        assert data["constraints"]["teamSize"] == 3
        assert data["constraints"]["deadline"] == 20
        assert data["tasks"]
        assert data["feasibility"]["level"] in {
            "comfortable", "tight-but-doable", "aggressive", "unrealistic",
        }

    def test_calendar_deadline(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", "--json", "--deadline", "2099-01-01", SHOP])
        assert r.exit_code == 0, r.output
        assert json.loads(r.stdout)["constraints"]["deadline"] == "2099-01-01"

    def test_bad_deadline(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", "--deadline", "soon", SHOP])
        assert r.exit_code == 2
        assert "neither a number of days" in r.output

    def test_max_tasks_must_be_positive(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", "--max-tasks", "0", SHOP])
        assert r.exit_code == 2

    def test_env_defaults(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", "--json", SHOP], env={"PLANCRAFT_TEAM_SIZE": "7"})
        assert r.exit_code == 0, r.output
        assert json.loads(r.stdout)["constraints"]["teamSize"] == 7

    def test_no_features_fails(self, cli_runner):
        r = cli_runner.invoke(main, ["analyze", "hello world"])
        assert r.exit_code == 1
        assert "decomposition failed" in r.output

    def test_verbose_debug_goes_to_stderr(self, cli_runner):
        r = cli_runner.invoke(main, ["-v", "analyze", "--json", SHOP])
        assert r.exit_code == 0, r.output
        assert "[DEBUG]" in r.stderr
        json.loads(r.stdout)


# ── graph ──────────────────────────────────────────────────────────────


class TestCliGraph:
    """plancraft graph TASKS_FILE."""

    def test_text_output(self, cli_runner, write_tasks, diamond):
        r = cli_runner.invoke(main, ["graph", str(write_tasks(diamond))])
        assert r.exit_code == 0, r.output
        assert "setup -> api -> release" in r.output
        assert ">>> Parallel Levels" in r.output

    def test_cycle_without_repair_fails(self, cli_runner, write_tasks, three_cycle):
        r = cli_runner.invoke(main, ["graph", str(write_tasks(three_cycle))])
        assert r.exit_code == 1
        assert "A -> B -> C -> A" in r.output
        assert "--repair" in r.output

    def test_repair_json(self, cli_runner, write_tasks, three_cycle):
        r = cli_runner.invoke(main, ["graph", "--repair", "--json", str(write_tasks(three_cycle))])
        assert r.exit_code == 0, r.output
        data = json.loads(r.stdout)
        assert data["removedEdges"] == [["A", "B"]]
        assert data["cycles"]["hasCycles"] is True
        assert data["schedule"]["duration"] == 30.0
        assert "Removed dependency A -> B" in r.stderr

    def test_repair_writes_output(self, cli_runner, write_tasks, three_cycle, tmp_path: Path):
        out = tmp_path / "fixed.yaml"
        r = cli_runner.invoke(main, ["graph", "--repair", "-o", str(out), str(write_tasks(three_cycle))])
        assert r.exit_code == 0, r.output
        fixed = {t.id: t.dependencies for t in load_task_file(out)}
        assert fixed == {"A": [], "B": ["C"], "C": ["A"]}

    def test_dangling_dependency_fails(self, cli_runner, write_tasks):
        r = cli_runner.invoke(main, ["graph", str(write_tasks([Task(id="A", dependencies=["ghost"])]))])
        assert r.exit_code == 1
        assert "dependency 'ghost' not found" in r.output

    def test_invalid_yaml_fails(self, cli_runner, tmp_path: Path):
        path = tmp_path / "broken.yaml"
        path.write_text("tasks: [unclosed", encoding="utf-8")
        r = cli_runner.invoke(main, ["graph", str(path)])
        assert r.exit_code == 1
        assert "Invalid YAML" in r.output

    def test_missing_file(self, cli_runner, tmp_path: Path):
        r = cli_runner.invoke(main, ["graph", str(tmp_path / "nope.yaml")])
        assert r.exit_code == 2

    def test_zero_team_fails(self, cli_runner, write_tasks, diamond):
        r = cli_runner.invoke(main, ["graph", "--team-size", "0", str(write_tasks(diamond))])
        assert r.exit_code == 1
        assert "team_size must be positive" in r.output


# ── feasibility ────────────────────────────────────────────────────────


class TestCliFeasibility:
    """plancraft feasibility TASKS_FILE."""

    def test_text_output(self, cli_runner, write_tasks, diamond):
        r = cli_runner.invoke(main, ["feasibility", str(write_tasks(diamond))])
        assert r.exit_code == 0, r.output
        assert "Project Feasibility:" in r.output

    def test_huge_task_json(self, cli_runner, write_tasks):
        path = write_tasks([Task(id="big", estimated_hours=500)])
        r = cli_runner.invoke(main, [
            "feasibility", "--json", "--team-size", "1", "--hours-per-day", "8", "--deadline", "1", str(path),
        ])
        assert r.exit_code == 0, r.output
        report = json.loads(r.stdout)["feasibility"]
        assert report["level"] == "unrealistic"
        assert report["score"] < 0.1
        assert report["breakdown"]["availableHours"] == 8.0
        assert "timeline" in [w["type"] for w in report["warnings"]]

    def test_cycles_are_repaired_first(self, cli_runner, write_tasks, three_cycle):
        r = cli_runner.invoke(main, ["feasibility", "--json", str(write_tasks(three_cycle))])
        assert r.exit_code == 0, r.output
        data = json.loads(r.stdout)
        assert data["removedEdges"] == [["A", "B"]]
        assert data["feasibility"]["breakdown"]["criticalPathHours"] == 30.0

    def test_invalid_constraints_still_report(self, cli_runner, write_tasks, diamond):
        r = cli_runner.invoke(main, ["feasibility", "--json", "--team-size", "0", str(write_tasks(diamond))])
        assert r.exit_code == 0, r.output
        assert json.loads(r.stdout)["feasibility"]["score"] == 0.0
