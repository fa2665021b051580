"""Main CLI entry point for the leadassign command."""

import json
import logging
import uuid
import click
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from typing import Optional, Tuple

from .. import __version__
from ..core.config import EngineConfigManager
from ..core.errors import NotFoundError
from ..routing.engine import AssignmentOutcome, LeadAssignmentEngine
from ..routing.rules import AssignmentMethod, AssignmentRule, RuleConditions, RuleType
from ..storage.database import AssignmentDatabase
from ..storage.models import Lead, LeadSource
from ..team.employees import CandidatePool, Employee

console = Console()


def get_db(db_path: Optional[str] = None) -> AssignmentDatabase:
    """Get database instance."""
    path = Path(db_path) if db_path else None
    return AssignmentDatabase(path)


def get_engine(db: AssignmentDatabase, config_path: Optional[str] = None) -> LeadAssignmentEngine:
    config = EngineConfigManager(Path(config_path) if config_path else None).config
    return LeadAssignmentEngine.from_database(db, config=config)


def _new_id() -> str:
    return str(uuid.uuid4())[:12]


db_option = click.option("--db", "db_path", help="Custom database path")
branch_option = click.option("--branch", "-b", "branch_id", required=True, help="Branch ID")


@click.group()
@click.version_option(version=__version__, prog_name="leadassign")
@click.option("--verbose", "-v", is_flag=True, help="Show decision logging")
def cli(verbose: bool):
    """Lead Assignment Engine - route inbound leads to branch employees.

    \b
    Quick Start:
      leadassign init
      leadassign add-branch mum "Mumbai"
      leadassign add-employee -b mum --name "Asha Rao" --territory Maharashtra
      leadassign add-rule -b mum --name "Mumbai marketplace" --target <emp> \\
          --conditions '{"sources": ["marketplace"], "cities": ["Mumbai"]}'
      leadassign assign <lead-id> -b mum
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )


# ============================================================================
# SETUP COMMANDS
# ============================================================================

@cli.command()
@db_option
def init(db_path: Optional[str]):
    """Initialize the assignment database."""
    db = get_db(db_path)
    console.print(Panel.fit(
        f"[green]✓ Database initialized![/green]\n\n"
        f"Location: [cyan]{db.db_path}[/cyan]\n\n"
        f"[bold]Next steps:[/bold]\n"
        f"1. [yellow]leadassign add-branch <id> <name>[/yellow]\n"
        f"2. [yellow]leadassign add-employee -b <branch> --name <name>[/yellow]\n"
        f"3. [yellow]leadassign add-rule -b <branch> --name <name> --target <employee>[/yellow]",
        title="Lead Assignment Engine"
    ))


@cli.command("add-branch")
@click.argument("branch_id")
@click.argument("name")
@db_option
def add_branch(branch_id: str, name: str, db_path: Optional[str]):
    """Register a branch."""
    db = get_db(db_path)
    db.add_branch(branch_id, name)
    console.print(f"[green]Branch {branch_id} ({name}) ready[/green]")


@cli.command("add-employee")
@branch_option
@click.option("--name", required=True, help="Full name")
@click.option("--id", "employee_id", help="Employee ID (generated if omitted)")
@click.option("--role", default="sales_rep", show_default=True)
@click.option("--department")
@click.option("--territory", "territories", multiple=True, help="Territory (repeatable)")
@click.option("--max-workload", type=int, help="Open-lead ceiling")
@db_option
def add_employee(
    branch_id: str,
    name: str,
    employee_id: Optional[str],
    role: str,
    department: Optional[str],
    territories: Tuple[str, ...],
    max_workload: Optional[int],
    db_path: Optional[str]
):
    """Add an assignable employee to a branch."""
    db = get_db(db_path)
    employee = db.add_employee(Employee(
        id=employee_id or _new_id(),
        branch_id=branch_id,
        full_name=name,
        role=role,
        department=department,
        territories=list(territories),
        max_workload=max_workload,
    ))
    console.print(f"[green]Added {employee.full_name}[/green] [dim]({employee.id})[/dim]")


@cli.command("add-rule")
@branch_option
@click.option("--name", required=True, help="Rule name")
@click.option("--priority", type=int, default=100, show_default=True, help="Lower runs first")
@click.option("--method", type=click.Choice([m.value for m in AssignmentMethod]), default="direct", show_default=True)
@click.option("--rule-type", type=click.Choice([t.value for t in RuleType]), default="general", show_default=True)
@click.option("--target", "target_employee_id", help="Target employee ID")
@click.option("--workload-limit", type=int, help="Skip rule when target has this many open leads")
@click.option("--conditions", default="{}", help="Conditions as JSON")
@db_option
def add_rule(
    branch_id: str,
    name: str,
    priority: int,
    method: str,
    rule_type: str,
    target_employee_id: Optional[str],
    workload_limit: Optional[int],
    conditions: str,
    db_path: Optional[str]
):
    """Add an assignment rule.

    \b
    Condition keys:
      sources, value_min, value_max, value_bracket, regions, states,
      cities, countries, industries, roles, departments, lead_age_hours,
      time_of_day, days_of_week, match_territory
    """
    try:
        data = json.loads(conditions)
    except ValueError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--conditions")

    parsed = RuleConditions.from_dict(data)
    if parsed.invalid:
        raise click.BadParameter(
            f"Unparseable condition(s): {', '.join(parsed.invalid)}", param_hint="--conditions"
        )

    db = get_db(db_path)
    rule = db.add_rule(AssignmentRule(
        id=_new_id(),
        branch_id=branch_id,
        name=name,
        priority=priority,
        target_employee_id=target_employee_id,
        method=AssignmentMethod(method),
        rule_type=RuleType(rule_type),
        workload_limit=workload_limit,
        conditions=parsed,
    ))
    console.print(f"[green]Added rule '{rule.name}'[/green] [dim]({rule.id}, priority {rule.priority})[/dim]")


@cli.command("add-lead")
@branch_option
@click.option("--id", "lead_id", help="Lead ID (generated if omitted)")
@click.option("--source", "-s", type=click.Choice([s.value for s in LeadSource]), default="manual", show_default=True)
@click.option("--title")
@click.option("--value", type=float)
@click.option("--region")
@click.option("--state")
@click.option("--city")
@click.option("--country")
@click.option("--industry")
@click.option("--customer", "customer_id", help="Existing customer ID")
@db_option
def add_lead(
    branch_id: str,
    lead_id: Optional[str],
    source: str,
    title: Optional[str],
    value: Optional[float],
    region: Optional[str],
    state: Optional[str],
    city: Optional[str],
    country: Optional[str],
    industry: Optional[str],
    customer_id: Optional[str],
    db_path: Optional[str]
):
    """Add a normalized lead (as ingestion would)."""
    db = get_db(db_path)
    if customer_id:
        db.add_customer(customer_id, branch_id)
    lead = db.add_lead(Lead(
        id=lead_id or _new_id(),
        branch_id=branch_id,
        source=LeadSource(source),
        title=title,
        value=value,
        region=region,
        state=state,
        city=city,
        country=country,
        industry=industry,
        customer_id=customer_id,
    ))
    console.print(f"[green]Added lead[/green] [cyan]{lead.id}[/cyan]")


# ============================================================================
# ASSIGNMENT COMMANDS
# ============================================================================

@cli.command()
@click.argument("lead_id")
@branch_option
@click.option("--force", is_flag=True, help="Reassign even if already assigned")
@click.option("--config", "config_path", help="Engine config JSON")
@db_option
def assign(lead_id: str, branch_id: str, force: bool, config_path: Optional[str], db_path: Optional[str]):
    """Assign a lead using relationship, rules and round-robin fallback."""
    db = get_db(db_path)
    engine = get_engine(db, config_path)

    try:
        result = engine.assign_lead(lead_id, branch_id, force_reassign=force)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    if result.outcome == AssignmentOutcome.NO_CANDIDATE:
        console.print(f"[yellow]{result.message}[/yellow]")
        raise SystemExit(2)

    if result.outcome == AssignmentOutcome.ALREADY_ASSIGNED:
        console.print(f"[dim]{result.message}[/dim]")
        return

    console.print(Panel.fit(
        f"[bold]{result.employee_name}[/bold] [dim]({result.employee_id})[/dim]\n"
        f"Method: [cyan]{result.method}[/cyan]\n"
        f"Rule: {result.rule_name or '-'}\n"
        + ("" if result.audit_recorded else "[yellow]Audit entry not recorded[/yellow]\n")
        + f"[dim]{result.message}[/dim]",
        title=f"Lead {lead_id} assigned"
    ))


@cli.command("manual-assign")
@click.argument("lead_id")
@click.argument("employee_id")
@branch_option
@click.option("--by", "assigned_by", help="Who made the override")
@db_option
def manual_assign(lead_id: str, employee_id: str, branch_id: str, assigned_by: Optional[str], db_path: Optional[str]):
    """Assign a lead to a specific employee."""
    db = get_db(db_path)
    engine = get_engine(db)
    try:
        result = engine.manual_assign(lead_id, branch_id, employee_id, assigned_by=assigned_by)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    console.print(f"[green]Lead {lead_id} assigned to {result.employee_name}[/green]")


@cli.command()
@click.argument("lead_id")
@branch_option
@click.option("--config", "config_path", help="Engine config JSON")
@db_option
def explain(lead_id: str, branch_id: str, config_path: Optional[str], db_path: Optional[str]):
    """Show how each rule evaluates for a lead, without assigning."""
    db = get_db(db_path)
    engine = get_engine(db, config_path)
    try:
        preview = engine.preview(lead_id, branch_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    table = Table(title=f"Rules for {preview.lead.display_name}")
    table.add_column("Priority", justify="right")
    table.add_column("Rule", style="cyan")
    table.add_column("Candidate")
    table.add_column("Result")
    table.add_column("Checks", style="dim")

    for trace in preview.traces:
        checks = "; ".join(
            f"{'✓' if c.passed else '✗'} {c.name}: {c.detail}" for c in trace.checks
        )
        table.add_row(
            str(trace.rule.priority),
            trace.rule.name,
            trace.candidate.full_name if trace.candidate else "-",
            "[green]match[/green]" if trace.matched else f"[red]{trace.reason}[/red]",
            checks,
        )
    console.print(table)

    if preview.selection is None:
        console.print("[yellow]No eligible employee[/yellow]")
    else:
        s = preview.selection
        console.print(f"Would assign to [bold]{s.employee.full_name}[/bold] via [cyan]{s.method}[/cyan] ({s.label})")


# ============================================================================
# VIEW COMMANDS
# ============================================================================

@cli.command()
@branch_option
@db_option
def rules(branch_id: str, db_path: Optional[str]):
    """List assignment rules in evaluation order."""
    db = get_db(db_path)

    table = Table(title=f"Assignment rules - {branch_id}")
    table.add_column("Priority", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Method")
    table.add_column("Target")
    table.add_column("Limit", justify="right")
    table.add_column("Conditions", style="dim")
    table.add_column("Active")

    for rule in db.list_rules(branch_id):
        table.add_row(
            str(rule.priority),
            rule.name,
            rule.method.value,
            rule.target_employee_id or "-",
            str(rule.workload_limit) if rule.workload_limit is not None else "-",
            json.dumps(rule.conditions.to_dict()) if not rule.conditions.is_empty else "(catch-all)",
            "[green]yes[/green]" if rule.is_active else "[red]no[/red]",
        )
    console.print(table)


@cli.command()
@branch_option
@click.option("--config", "config_path", help="Engine config JSON")
@db_option
def employees(branch_id: str, config_path: Optional[str], db_path: Optional[str]):
    """List employees with their current open-lead workload."""
    db = get_db(db_path)
    config = EngineConfigManager(Path(config_path) if config_path else None).config
    workloads = db.get_open_lead_counts(branch_id, config.open_statuses)
    pool = CandidatePool.build(
        branch_id, db.get_active_employees(branch_id), workloads, config.assignable_roles
    )

    table = Table(title=f"Employees - {branch_id}")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Role")
    table.add_column("Department")
    table.add_column("Territories")
    table.add_column("Workload", justify="right")
    table.add_column("Assignable")

    for employee in db.get_employees(branch_id):
        workload = workloads.get(employee.id, 0)
        limit = f"/{employee.max_workload}" if employee.max_workload is not None else ""
        table.add_row(
            employee.id,
            employee.full_name,
            employee.role,
            employee.department or "-",
            ", ".join(employee.territories) or "-",
            f"{workload}{limit}",
            "[green]yes[/green]" if pool.get(employee.id) else "[red]no[/red]",
        )
    console.print(table)


@cli.command()
@branch_option
@click.option("--limit", "-n", default=20, help="Number of entries to show")
@db_option
def ledger(branch_id: str, limit: int, db_path: Optional[str]):
    """Show recent assignment decisions."""
    db = get_db(db_path)

    table = Table(title=f"Assignment ledger - {branch_id}")
    table.add_column("When", style="dim")
    table.add_column("Lead", style="cyan")
    table.add_column("Employee")
    table.add_column("Method")
    table.add_column("Rule")
    table.add_column("Manual")

    for decision in db.recent_decisions(branch_id, limit=limit):
        table.add_row(
            decision.decided_at.strftime("%Y-%m-%d %H:%M"),
            decision.lead_id,
            decision.employee_id,
            decision.method,
            decision.rule_name or "-",
            "yes" if decision.is_manual_override else "",
        )
    console.print(table)

    stats = db.get_stats(branch_id)
    console.print(
        f"[dim]{stats['total_leads']} leads, {stats['unassigned']} unassigned[/dim]"
    )


# ============================================================================
# CONFIG COMMANDS
# ============================================================================

@cli.group()
def config():
    """Engine configuration."""
    pass


@config.command("roles")
@click.argument("roles", nargs=-1)
@click.option("--config", "config_path", help="Engine config JSON")
def config_roles(roles: Tuple[str, ...], config_path: Optional[str]):
    """Show or replace the roles that receive leads.

    \b
    Examples:
      leadassign config roles
      leadassign config roles sales_rep sales_manager
    """
    manager = EngineConfigManager(Path(config_path) if config_path else None)
    if roles:
        manager.set_assignable_roles(list(roles))
        console.print(f"[green]✓ Assignable roles saved to {manager.config_path}[/green]")

    console.print(f"Assignable roles: [cyan]{', '.join(manager.config.assignable_roles)}[/cyan]")


def main():
    cli()


if __name__ == "__main__":
    main()
