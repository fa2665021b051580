"""Lead routing and assignment system."""

from .rules import AssignmentRule, AssignmentMethod, RuleConditions, RuleType
from .conditions import ConditionEvaluator, ConditionCheck
from .methods import AssignmentMethodResolver
from .ledger import AssignmentDecision
from .engine import (
    LeadAssignmentEngine,
    AssignmentResult,
    AssignmentOutcome,
    AssignmentPreview,
)

__all__ = [
    "AssignmentRule",
    "AssignmentMethod",
    "RuleConditions",
    "RuleType",
    "ConditionEvaluator",
    "ConditionCheck",
    "AssignmentMethodResolver",
    "AssignmentDecision",
    "LeadAssignmentEngine",
    "AssignmentResult",
    "AssignmentOutcome",
    "AssignmentPreview",
]
