"""Tests for the leadassign command line."""

import json
import pytest
from pathlib import Path
from click.testing import CliRunner
from rich.console import Console

from lead_assignment_engine.cli import main as cli_main
from lead_assignment_engine.cli.main import cli
from lead_assignment_engine.storage.database import AssignmentDatabase


@pytest.fixture
def db_path(temp_data_dir):
    return str(temp_data_dir / "cli.db")


@pytest.fixture
def config_path(temp_data_dir):
    """Engine config that does not depend on the home directory."""
    path = temp_data_dir / "engine_config.json"
    path.write_text(json.dumps({"assignable_roles": ["sales_rep", "manager"]}))
    return str(path)


@pytest.fixture
def runner(monkeypatch):
    # Wide console so table cells are not wrapped
    monkeypatch.setattr(cli_main, "console", Console(width=200))
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(cli, list(args))


@pytest.fixture
def branch(runner, db_path):
    invoke(runner, "init", "--db", db_path)
    invoke(runner, "add-branch", "mum", "Mumbai", "--db", db_path)
    invoke(runner, "add-employee", "-b", "mum", "--name", "Asha Rao", "--id", "emp-a",
           "--territory", "Maharashtra", "--db", db_path)
    invoke(runner, "add-employee", "-b", "mum", "--name", "Bilal Khan", "--id", "emp-b",
           "--max-workload", "10", "--db", db_path)
    return db_path


class TestSetupCommands:
    """Tests for data entry commands."""

    def test_init(self, runner, db_path):
        result = invoke(runner, "init", "--db", db_path)
        assert result.exit_code == 0
        assert "Database initialized" in result.output

    def test_add_employee(self, runner, branch):
        employees = AssignmentDatabase(branch).get_employees("mum")
        assert [e.id for e in employees] == ["emp-a", "emp-b"]
        assert employees[0].territories == ["Maharashtra"]
        assert employees[1].max_workload == 10

    def test_add_rule(self, runner, branch):
        result = invoke(
            runner, "add-rule", "-b", "mum", "--name", "Mumbai", "--target", "emp-b",
            "--priority", "3", "--workload-limit", "5",
            "--conditions", '{"cities": ["Mumbai"]}', "--db", branch,
        )
        assert result.exit_code == 0

        rule = AssignmentDatabase(branch).get_active_rules("mum")[0]
        assert rule.priority == 3
        assert rule.workload_limit == 5
        assert rule.conditions.cities == ("Mumbai",)

    def test_add_rule_rejects_bad_json(self, runner, branch):
        result = invoke(runner, "add-rule", "-b", "mum", "--name", "Bad", "--conditions", "{oops", "--db", branch)
        assert result.exit_code == 2
        assert AssignmentDatabase(branch).get_active_rules("mum") == []

    def test_add_rule_rejects_bad_values(self, runner, branch):
        result = invoke(
            runner, "add-rule", "-b", "mum", "--name", "Bad",
            "--conditions", '{"value_min": "lots"}', "--db", branch,
        )
        assert result.exit_code == 2


class TestAssignCommands:
    """Tests for assign, manual-assign and explain."""

    def test_assign_with_rule(self, runner, branch, config_path):
        invoke(runner, "add-rule", "-b", "mum", "--name", "Mumbai", "--target", "emp-b",
               "--conditions", '{"cities": ["Mumbai"]}', "--db", branch)
        invoke(runner, "add-lead", "-b", "mum", "--id", "L1", "--city", "Mumbai", "--db", branch)

        result = invoke(runner, "assign", "L1", "-b", "mum", "--config", config_path, "--db", branch)

        assert result.exit_code == 0
        lead = AssignmentDatabase(branch).get_lead("L1", "mum")
        assert lead.assigned_to == "emp-b"
        assert lead.assignment_rule == "Mumbai"

    def test_assign_twice(self, runner, branch, config_path):
        invoke(runner, "add-lead", "-b", "mum", "--id", "L1", "--db", branch)
        invoke(runner, "assign", "L1", "-b", "mum", "--config", config_path, "--db", branch)

        result = invoke(runner, "assign", "L1", "-b", "mum", "--config", config_path, "--db", branch)

        assert result.exit_code == 0
        assert "already assigned" in result.output
        assert len(AssignmentDatabase(branch).history("L1")) == 1

    def test_assign_unknown_lead(self, runner, branch, config_path):
        result = invoke(runner, "assign", "nope", "-b", "mum", "--config", config_path, "--db", branch)
        assert result.exit_code == 1

    def test_assign_without_employees(self, runner, db_path, config_path):
        invoke(runner, "add-branch", "del", "Delhi", "--db", db_path)
        invoke(runner, "add-lead", "-b", "del", "--id", "L1", "--db", db_path)

        result = invoke(runner, "assign", "L1", "-b", "del", "--config", config_path, "--db", db_path)

        assert result.exit_code == 2
        assert AssignmentDatabase(db_path).get_lead("L1", "del").assigned_to is None

    def test_manual_assign(self, runner, branch):
        invoke(runner, "add-lead", "-b", "mum", "--id", "L1", "--db", branch)

        result = invoke(runner, "manual-assign", "L1", "emp-b", "-b", "mum", "--by", "boss", "--db", branch)

        assert result.exit_code == 0
        history = AssignmentDatabase(branch).history("L1")
        assert history[-1].assigned_by == "boss"

    def test_explain_does_not_assign(self, runner, branch, config_path):
        invoke(runner, "add-rule", "-b", "mum", "--name", "Pune", "--target", "emp-a",
               "--conditions", '{"cities": ["Pune"]}', "--db", branch)
        invoke(runner, "add-lead", "-b", "mum", "--id", "L1", "--city", "Mumbai", "--db", branch)

        result = invoke(runner, "explain", "L1", "-b", "mum", "--config", config_path, "--db", branch)

        assert result.exit_code == 0
        assert "Would assign" in result.output
        assert AssignmentDatabase(branch).get_lead("L1", "mum").assigned_to is None


class TestViewCommands:
    """Tests for listing commands."""

    def test_rules(self, runner, branch):
        invoke(runner, "add-rule", "-b", "mum", "--name", "Catchall", "--target", "emp-a", "--db", branch)
        result = invoke(runner, "rules", "-b", "mum", "--db", branch)
        assert result.exit_code == 0
        assert "Catchall" in result.output

    def test_employees(self, runner, branch, config_path):
        result = invoke(runner, "employees", "-b", "mum", "--config", config_path, "--db", branch)
        assert result.exit_code == 0
        assert "emp-a" in result.output

    def test_ledger(self, runner, branch, config_path):
        invoke(runner, "add-lead", "-b", "mum", "--id", "L1", "--db", branch)
        invoke(runner, "assign", "L1", "-b", "mum", "--config", config_path, "--db", branch)

        result = invoke(runner, "ledger", "-b", "mum", "--db", branch)

        assert result.exit_code == 0
        assert "1 leads, 0 unassigned" in result.output


class TestConfigCommands:
    """Tests for the config group."""

    def test_set_roles(self, runner, branch, config_path):
        invoke(runner, "add-employee", "-b", "mum", "--name", "Sam Support", "--id", "emp-s",
               "--role", "support", "--db", branch)
        invoke(runner, "add-lead", "-b", "mum", "--id", "L1", "--db", branch)

        result = invoke(runner, "config", "roles", "support", "--config", config_path)

        assert result.exit_code == 0
        assert json.loads(Path(config_path).read_text())["assignable_roles"] == ["support"]

        invoke(runner, "assign", "L1", "-b", "mum", "--config", config_path, "--db", branch)
        assert AssignmentDatabase(branch).get_lead("L1", "mum").assigned_to == "emp-s"

    def test_show_roles(self, runner, config_path):
        result = invoke(runner, "config", "roles", "--config", config_path)

        assert result.exit_code == 0
        assert "sales_rep, manager" in result.output
