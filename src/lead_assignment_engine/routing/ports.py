"""Collaborator interfaces the assignment engine reads from and writes to."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from ..storage.models import Lead
from ..team.employees import Employee
from .ledger import AssignmentDecision
from .rules import AssignmentRule


class LeadStore(ABC):
    """Lead lookup and conditional assignment update."""

    @abstractmethod
    def get_lead(self, lead_id: str, branch_id: str) -> Optional[Lead]:
        pass

    @abstractmethod
    def update_assignment(
        self,
        lead_id: str,
        branch_id: str,
        employee_id: str,
        rule_label: str,
        assigned_at: datetime,
        expected_assignee: Optional[str]
    ) -> bool:
        """Set the assignment only if ``assigned_to`` still equals ``expected_assignee``.

        Returns False when another writer got there first.
        """
        pass


class RuleStore(ABC):
    """Read-only access to assignment rules."""

    @abstractmethod
    def get_active_rules(self, branch_id: str) -> List[AssignmentRule]:
        """Active rules for the branch, ascending priority."""
        pass


class EmployeeDirectory(ABC):
    """Branch membership and workload counts."""

    @abstractmethod
    def branch_exists(self, branch_id: str) -> bool:
        pass

    @abstractmethod
    def get_active_employees(self, branch_id: str) -> List[Employee]:
        pass

    @abstractmethod
    def get_open_lead_counts(self, branch_id: str, statuses: List[str]) -> Dict[str, int]:
        """Employee id -> number of assigned leads in one of ``statuses``."""
        pass


class RelationshipLookup(ABC):
    """Prior salesperson for a customer."""

    @abstractmethod
    def find_previous_assignee(
        self,
        customer_id: str,
        branch_id: str,
        exclude_lead_id: Optional[str] = None
    ) -> Optional[str]:
        """Most recent assignee across the customer's leads and orders, or None."""
        pass


class AssignmentLedger(ABC):
    """Append-only decision log."""

    @abstractmethod
    def append(self, decision: AssignmentDecision) -> None:
        """Record one decision. Raises AuditWriteFailure on storage errors."""
        pass

    @abstractmethod
    def last_round_robin_assignee(self, branch_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def history(self, lead_id: str) -> List[AssignmentDecision]:
        pass
