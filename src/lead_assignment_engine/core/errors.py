"""Exceptions raised by the lead assignment engine."""

from typing import Optional


class AssignmentError(Exception):
    """Base class for assignment failures."""


class NotFoundError(AssignmentError):
    """A referenced record does not exist."""


class LeadNotFound(NotFoundError):
    """Lead is missing or belongs to another branch."""

    def __init__(self, lead_id: str, branch_id: str):
        super().__init__(f"Lead {lead_id} not found in branch {branch_id}")
        self.lead_id = lead_id
        self.branch_id = branch_id


class BranchNotFound(NotFoundError):
    """Branch (tenant) does not exist."""

    def __init__(self, branch_id: str):
        super().__init__(f"Branch {branch_id} not found")
        self.branch_id = branch_id


class EmployeeNotFound(NotFoundError):
    """Employee is missing, inactive, or belongs to another branch."""

    def __init__(self, employee_id: str, branch_id: str):
        super().__init__(f"Active employee {employee_id} not found in branch {branch_id}")
        self.employee_id = employee_id
        self.branch_id = branch_id


class NoEligibleCandidate(AssignmentError):
    """Branch has no active assignable employees."""

    def __init__(self, branch_id: str):
        super().__init__(f"No eligible employee in branch {branch_id}")
        self.branch_id = branch_id


class RuleEvaluationError(AssignmentError):
    """A rule carries condition data that cannot be evaluated."""

    def __init__(self, rule_id: str, condition: str, reason: str):
        super().__init__(f"Rule {rule_id}: cannot evaluate '{condition}' ({reason})")
        self.rule_id = rule_id
        self.condition = condition
        self.reason = reason


class PersistenceConflict(AssignmentError):
    """Conditional update lost the race to a concurrent decision."""

    def __init__(self, lead_id: str, current_assignee: Optional[str] = None):
        super().__init__(f"Lead {lead_id} was assigned concurrently")
        self.lead_id = lead_id
        self.current_assignee = current_assignee


class AuditWriteFailure(AssignmentError):
    """Ledger append failed after the lead was assigned."""

    def __init__(self, lead_id: str, reason: str):
        super().__init__(f"Could not record assignment of lead {lead_id}: {reason}")
        self.lead_id = lead_id
        self.reason = reason


class AssignmentTimeout(AssignmentError):
    """Decision exceeded the caller's time budget before anything was written."""

    def __init__(self, lead_id: str, timeout: float):
        super().__init__(f"Assignment of lead {lead_id} exceeded {timeout:.2f}s")
        self.lead_id = lead_id
        self.timeout = timeout
