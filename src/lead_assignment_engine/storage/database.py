"""SQLite storage for leads, employees, assignment rules and the assignment ledger."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Generator

from .models import Lead, LeadStatus, LeadSource
from ..core.errors import AuditWriteFailure, RuleEvaluationError
from ..routing.ledger import AssignmentDecision, ROUND_ROBIN_METHODS
from ..routing.ports import (
    AssignmentLedger,
    EmployeeDirectory,
    LeadStore,
    RelationshipLookup,
    RuleStore,
)
from ..routing.rules import AssignmentMethod, AssignmentRule, RuleConditions, RuleType
from ..team.employees import Employee

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class AssignmentDatabase(LeadStore, RuleStore, EmployeeDirectory, RelationshipLookup, AssignmentLedger):
    """SQLite backend implementing every collaborator the engine needs."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection."""
        if db_path is None:
            db_path = Path.home() / ".lead-assignment-engine" / "assignments.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS branches (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS employees (
                    id TEXT PRIMARY KEY,
                    branch_id TEXT NOT NULL,
                    full_name TEXT NOT NULL,
                    role TEXT NOT NULL,
                    department TEXT,
                    territories_json TEXT,
                    max_workload INTEGER,
                    is_active INTEGER DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

                    FOREIGN KEY (branch_id) REFERENCES branches(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS customers (
                    id TEXT PRIMARY KEY,
                    branch_id TEXT NOT NULL,
                    name TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS leads (
                    id TEXT PRIMARY KEY,
                    branch_id TEXT NOT NULL,
                    source TEXT NOT NULL,
                    title TEXT,
                    value REAL,

                    region TEXT,
                    state TEXT,
                    city TEXT,
                    country TEXT,
                    industry TEXT,

                    customer_id TEXT,
                    status TEXT DEFAULT 'new',
                    created_at TIMESTAMP NOT NULL,

                    assigned_to TEXT,
                    assignment_rule TEXT,
                    assigned_at TIMESTAMP,

                    raw_data_json TEXT,

                    FOREIGN KEY (customer_id) REFERENCES customers(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS orders (
                    id TEXT PRIMARY KEY,
                    branch_id TEXT NOT NULL,
                    customer_id TEXT NOT NULL,
                    salesperson_id TEXT,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS assignment_rules (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    branch_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    priority INTEGER NOT NULL DEFAULT 0,
                    target_employee_id TEXT,
                    method TEXT NOT NULL DEFAULT 'direct',
                    rule_type TEXT NOT NULL DEFAULT 'general',
                    workload_limit INTEGER,
                    conditions_json TEXT,
                    is_active INTEGER DEFAULT 1,
                    description TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # Append-only; seq gives ledger order independent of clock resolution
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS assignment_log (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    lead_id TEXT NOT NULL,
                    branch_id TEXT NOT NULL,
                    employee_id TEXT NOT NULL,
                    rule_id TEXT,
                    rule_name TEXT,
                    method TEXT NOT NULL,
                    is_manual_override INTEGER DEFAULT 0,
                    assigned_by TEXT,
                    decided_at TIMESTAMP NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_leads_assignee ON leads(branch_id, assigned_to, status)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_leads_customer ON leads(customer_id)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_orders_customer ON orders(customer_id)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_rules_branch ON assignment_rules(branch_id, is_active, priority)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_log_branch ON assignment_log(branch_id, method)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_log_lead ON assignment_log(lead_id)
            """)

    # === ROW CONVERSION ===

    def _row_to_lead(self, row: sqlite3.Row) -> Lead:
        """Convert a database row to a Lead object."""
        return Lead(
            id=row["id"],
            branch_id=row["branch_id"],
            source=LeadSource(row["source"]),
            title=row["title"],
            value=row["value"],
            region=row["region"],
            state=row["state"],
            city=row["city"],
            country=row["country"],
            industry=row["industry"],
            customer_id=row["customer_id"],
            status=LeadStatus(row["status"]) if row["status"] else LeadStatus.NEW,
            created_at=_parse_dt(row["created_at"]) or datetime.now(),
            assigned_to=row["assigned_to"],
            assignment_rule=row["assignment_rule"],
            assigned_at=_parse_dt(row["assigned_at"]),
            raw_data=json.loads(row["raw_data_json"]) if row["raw_data_json"] else {},
        )

    def _row_to_employee(self, row: sqlite3.Row) -> Employee:
        return Employee(
            id=row["id"],
            branch_id=row["branch_id"],
            full_name=row["full_name"],
            role=row["role"],
            department=row["department"],
            territories=json.loads(row["territories_json"]) if row["territories_json"] else [],
            max_workload=row["max_workload"],
            is_active=bool(row["is_active"]),
            created_at=_parse_dt(row["created_at"]) or datetime.now(),
        )

    def _row_to_rule(self, row: sqlite3.Row) -> AssignmentRule:
        """Convert a rule row. Raises RuleEvaluationError for an unknown method."""
        try:
            method = AssignmentMethod(row["method"])
        except ValueError:
            raise RuleEvaluationError(row["id"], "method", f"unknown method '{row['method']}'")

        try:
            rule_type = RuleType(row["rule_type"])
        except ValueError:
            logger.warning(f"Rule {row['id']} has unknown type '{row['rule_type']}', treating as general")
            rule_type = RuleType.GENERAL

        raw_conditions = row["conditions_json"]
        try:
            data = json.loads(raw_conditions) if raw_conditions else {}
        except ValueError:
            data = raw_conditions  # kept as-is; evaluation will reject it

        return AssignmentRule(
            id=row["id"],
            branch_id=row["branch_id"],
            name=row["name"],
            priority=row["priority"],
            target_employee_id=row["target_employee_id"],
            method=method,
            rule_type=rule_type,
            workload_limit=row["workload_limit"],
            conditions=RuleConditions.from_dict(data),
            is_active=bool(row["is_active"]),
            description=row["description"],
            created_at=_parse_dt(row["created_at"]) or datetime.now(),
        )

    def _row_to_decision(self, row: sqlite3.Row) -> AssignmentDecision:
        return AssignmentDecision(
            id=row["id"],
            lead_id=row["lead_id"],
            branch_id=row["branch_id"],
            employee_id=row["employee_id"],
            rule_id=row["rule_id"],
            rule_name=row["rule_name"],
            method=row["method"],
            is_manual_override=bool(row["is_manual_override"]),
            assigned_by=row["assigned_by"],
            decided_at=_parse_dt(row["decided_at"]),
        )

    # === LEADS ===

    def get_lead(self, lead_id: str, branch_id: str) -> Optional[Lead]:
        """Get a lead by ID within a branch."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM leads WHERE id = ? AND branch_id = ?",
                (lead_id, branch_id)
            )
            row = cursor.fetchone()
            return self._row_to_lead(row) if row else None

    def update_assignment(
        self,
        lead_id: str,
        branch_id: str,
        employee_id: str,
        rule_label: str,
        assigned_at: datetime,
        expected_assignee: Optional[str]
    ) -> bool:
        """Conditional single-statement update of the assignment columns."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE leads SET
                    assigned_to = ?, assignment_rule = ?, assigned_at = ?
                WHERE id = ? AND branch_id = ? AND assigned_to IS ?
            """, (
                employee_id,
                rule_label,
                assigned_at.isoformat(),
                lead_id,
                branch_id,
                expected_assignee,
            ))
            return cursor.rowcount == 1

    def add_lead(self, lead: Lead) -> Lead:
        """Insert a normalized lead handed over by ingestion."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO leads (
                    id, branch_id, source, title, value,
                    region, state, city, country, industry,
                    customer_id, status, created_at,
                    assigned_to, assignment_rule, assigned_at, raw_data_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                lead.id,
                lead.branch_id,
                lead.source.value,
                lead.title,
                lead.value,
                lead.region,
                lead.state,
                lead.city,
                lead.country,
                lead.industry,
                lead.customer_id,
                lead.status.value,
                lead.created_at.isoformat(),
                lead.assigned_to,
                lead.assignment_rule,
                _iso(lead.assigned_at),
                json.dumps(lead.raw_data) if lead.raw_data else None,
            ))
        return lead

    def set_lead_status(self, lead_id: str, status: LeadStatus) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE leads SET status = ? WHERE id = ?", (status.value, lead_id))
            return cursor.rowcount > 0

    # === BRANCHES, EMPLOYEES, CUSTOMERS ===

    def add_branch(self, branch_id: str, name: str):
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO branches (id, name, created_at) VALUES (?, ?, ?)",
                (branch_id, name, datetime.now().isoformat())
            )

    def branch_exists(self, branch_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM branches WHERE id = ?", (branch_id,))
            return cursor.fetchone() is not None

    def add_employee(self, employee: Employee) -> Employee:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO employees (
                    id, branch_id, full_name, role, department,
                    territories_json, max_workload, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                employee.id,
                employee.branch_id,
                employee.full_name,
                employee.role,
                employee.department,
                json.dumps(employee.territories) if employee.territories else None,
                employee.max_workload,
                1 if employee.is_active else 0,
                employee.created_at.isoformat(),
            ))
        return employee

    def set_employee_active(self, employee_id: str, is_active: bool) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE employees SET is_active = ? WHERE id = ?",
                (1 if is_active else 0, employee_id)
            )
            return cursor.rowcount > 0

    def get_active_employees(self, branch_id: str) -> List[Employee]:
        return self.get_employees(branch_id, include_inactive=False)

    def get_employees(self, branch_id: str, include_inactive: bool = True) -> List[Employee]:
        query = "SELECT * FROM employees WHERE branch_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY id"

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, (branch_id,))
            return [self._row_to_employee(row) for row in cursor.fetchall()]

    def get_open_lead_counts(self, branch_id: str, statuses: List[str]) -> Dict[str, int]:
        """Open-lead count per assignee. Read without locking; counts are advisory."""
        if not statuses:
            return {}
        placeholders = ", ".join("?" for _ in statuses)
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT assigned_to, COUNT(*) FROM leads
                WHERE branch_id = ? AND assigned_to IS NOT NULL
                  AND status IN ({placeholders})
                GROUP BY assigned_to
            """, [branch_id, *statuses])
            return {row[0]: row[1] for row in cursor.fetchall()}

    def add_customer(self, customer_id: str, branch_id: str, name: Optional[str] = None):
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO customers (id, branch_id, name, created_at) VALUES (?, ?, ?, ?)",
                (customer_id, branch_id, name, datetime.now().isoformat())
            )

    def add_order(
        self,
        order_id: str,
        branch_id: str,
        customer_id: str,
        salesperson_id: Optional[str],
        created_at: Optional[datetime] = None
    ):
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO orders (id, branch_id, customer_id, salesperson_id, created_at) VALUES (?, ?, ?, ?, ?)",
                (order_id, branch_id, customer_id, salesperson_id, (created_at or datetime.now()).isoformat())
            )

    def find_previous_assignee(
        self,
        customer_id: str,
        branch_id: str,
        exclude_lead_id: Optional[str] = None
    ) -> Optional[str]:
        """Most recent salesperson across the customer's other leads and orders."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT employee_id FROM (
                    SELECT assigned_to AS employee_id, assigned_at AS touched_at
                    FROM leads
                    WHERE customer_id = ? AND branch_id = ?
                      AND assigned_to IS NOT NULL
                      AND (? IS NULL OR id != ?)
                    UNION ALL
                    SELECT salesperson_id AS employee_id, created_at AS touched_at
                    FROM orders
                    WHERE customer_id = ? AND branch_id = ?
                      AND salesperson_id IS NOT NULL
                )
                ORDER BY touched_at DESC
                LIMIT 1
            """, (
                customer_id, branch_id, exclude_lead_id, exclude_lead_id,
                customer_id, branch_id,
            ))
            row = cursor.fetchone()
            return row[0] if row else None

    # === RULES ===

    def add_rule(self, rule: AssignmentRule) -> AssignmentRule:
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO assignment_rules (
                    id, branch_id, name, priority, target_employee_id, method,
                    rule_type, workload_limit, conditions_json, is_active,
                    description, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                rule.id,
                rule.branch_id,
                rule.name,
                rule.priority,
                rule.target_employee_id,
                rule.method.value,
                rule.rule_type.value,
                rule.workload_limit,
                json.dumps(rule.conditions.to_dict()),
                1 if rule.is_active else 0,
                rule.description,
                rule.created_at.isoformat(),
            ))
        return rule

    def set_rule_active(self, rule_id: str, is_active: bool) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE assignment_rules SET is_active = ? WHERE id = ?",
                (1 if is_active else 0, rule_id)
            )
            return cursor.rowcount > 0

    def get_active_rules(self, branch_id: str) -> List[AssignmentRule]:
        """Active rules by ascending priority, insertion order on ties.

        Rows that cannot be turned into a rule are logged and left out.
        """
        return self.list_rules(branch_id, include_inactive=False)

    def list_rules(self, branch_id: str, include_inactive: bool = True) -> List[AssignmentRule]:
        query = "SELECT * FROM assignment_rules WHERE branch_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY priority ASC, seq ASC"

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, (branch_id,))
            rows = cursor.fetchall()

        rules = []
        for row in rows:
            try:
                rules.append(self._row_to_rule(row))
            except RuleEvaluationError as e:
                logger.warning(f"Skipping rule '{row['name']}': {e}")
        return rules

    # === LEDGER ===

    def append(self, decision: AssignmentDecision) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO assignment_log (
                        id, lead_id, branch_id, employee_id, rule_id, rule_name,
                        method, is_manual_override, assigned_by, decided_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    decision.id,
                    decision.lead_id,
                    decision.branch_id,
                    decision.employee_id,
                    decision.rule_id,
                    decision.rule_name,
                    decision.method,
                    1 if decision.is_manual_override else 0,
                    decision.assigned_by,
                    decision.decided_at.isoformat(),
                ))
        except sqlite3.Error as e:
            raise AuditWriteFailure(decision.lead_id, str(e)) from e

    def last_round_robin_assignee(self, branch_id: str) -> Optional[str]:
        placeholders = ", ".join("?" for _ in ROUND_ROBIN_METHODS)
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT employee_id FROM assignment_log
                WHERE branch_id = ? AND method IN ({placeholders})
                ORDER BY seq DESC
                LIMIT 1
            """, [branch_id, *ROUND_ROBIN_METHODS])
            row = cursor.fetchone()
            return row[0] if row else None

    def history(self, lead_id: str) -> List[AssignmentDecision]:
        """Ledger entries for a lead, oldest first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM assignment_log WHERE lead_id = ? ORDER BY seq ASC",
                (lead_id,)
            )
            return [self._row_to_decision(row) for row in cursor.fetchall()]

    def recent_decisions(self, branch_id: str, limit: int = 50) -> List[AssignmentDecision]:
        """Latest ledger entries for a branch, newest first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM assignment_log WHERE branch_id = ? ORDER BY seq DESC LIMIT ?",
                (branch_id, limit)
            )
            return [self._row_to_decision(row) for row in cursor.fetchall()]

    def get_stats(self, branch_id: str) -> Dict[str, Any]:
        """Assignment counts for a branch."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("SELECT COUNT(*) FROM leads WHERE branch_id = ?", (branch_id,))
            total = cursor.fetchone()[0]

            cursor.execute(
                "SELECT COUNT(*) FROM leads WHERE branch_id = ? AND assigned_to IS NULL",
                (branch_id,)
            )
            unassigned = cursor.fetchone()[0]

            cursor.execute(
                "SELECT method, COUNT(*) FROM assignment_log WHERE branch_id = ? GROUP BY method",
                (branch_id,)
            )
            by_method = {row[0]: row[1] for row in cursor.fetchall()}

            return {
                "total_leads": total,
                "unassigned": unassigned,
                "decisions_by_method": by_method,
            }
