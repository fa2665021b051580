"""Assignable employees and the per-decision candidate pool."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Iterable


@dataclass
class Employee:
    """A branch member who can receive leads."""
    id: str
    branch_id: str
    full_name: str
    role: str = "sales_rep"
    department: Optional[str] = None
    territories: List[str] = field(default_factory=list)
    max_workload: Optional[int] = None  # None = unlimited
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    # Computed per decision, never stored
    current_workload: int = 0

    @property
    def has_capacity(self) -> bool:
        if self.max_workload is None:
            return True
        return self.current_workload < self.max_workload

    def covers_location(self, location: str) -> bool:
        """Case-insensitive containment of any territory in the location string."""
        if not location:
            return False
        location = location.lower()
        return any(territory.lower() in location for territory in self.territories if territory)


@dataclass
class CandidatePool:
    """Snapshot of assignable employees taken once per decision.

    Candidates are kept sorted by id so every strategy that needs a stable
    order sees the same one. ``last_round_robin_id`` is the employee who
    received the most recent round-robin assignment in the branch, read from
    the ledger.
    """
    branch_id: str
    candidates: List[Employee] = field(default_factory=list)
    last_round_robin_id: Optional[str] = None

    def __post_init__(self):
        self.candidates = sorted(
            (c for c in self.candidates if c.is_active),
            key=lambda c: c.id
        )
        self._by_id: Dict[str, Employee] = {c.id: c for c in self.candidates}

    @classmethod
    def build(
        cls,
        branch_id: str,
        employees: Iterable[Employee],
        workloads: Dict[str, int],
        assignable_roles: Optional[Iterable[str]] = None,
        last_round_robin_id: Optional[str] = None
    ) -> "CandidatePool":
        """Combine directory rows with open-lead counts into a pool."""
        roles = set(assignable_roles) if assignable_roles is not None else None
        candidates = []
        for employee in employees:
            if not employee.is_active:
                continue
            if roles is not None and employee.role not in roles:
                continue
            employee.current_workload = workloads.get(employee.id, 0)
            candidates.append(employee)
        return cls(branch_id=branch_id, candidates=candidates, last_round_robin_id=last_round_robin_id)

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self):
        return iter(self.candidates)

    def get(self, employee_id: Optional[str]) -> Optional[Employee]:
        if employee_id is None:
            return None
        return self._by_id.get(employee_id)

    @property
    def is_empty(self) -> bool:
        return not self.candidates
