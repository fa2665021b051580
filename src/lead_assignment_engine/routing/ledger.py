"""Append-only record of assignment decisions."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


RELATIONSHIP = "relationship"
ROUND_ROBIN_FALLBACK = "round_robin_fallback"
MANUAL = "manual"
MANUAL_ASSIGNMENT = "manual_assignment"

# Ledger methods that advance the round-robin pointer
ROUND_ROBIN_METHODS = ("round_robin", ROUND_ROBIN_FALLBACK)


@dataclass(frozen=True)
class AssignmentDecision:
    """Who got a lead, through which rule and method, and when."""

    lead_id: str
    branch_id: str
    employee_id: str
    method: str
    rule_id: Optional[str] = None  # None = relationship, fallback or manual
    rule_name: Optional[str] = None
    is_manual_override: bool = False
    assigned_by: Optional[str] = None
    decided_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "branch_id": self.branch_id,
            "employee_id": self.employee_id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "method": self.method,
            "is_manual_override": self.is_manual_override,
            "assigned_by": self.assigned_by,
            "decided_at": self.decided_at.isoformat(),
        }
