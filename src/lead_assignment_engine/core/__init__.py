"""Engine configuration and error types."""

from .config import EngineConfig, EngineConfigManager
from .errors import (
    AssignmentError,
    NotFoundError,
    LeadNotFound,
    BranchNotFound,
    EmployeeNotFound,
    NoEligibleCandidate,
    RuleEvaluationError,
    PersistenceConflict,
    AuditWriteFailure,
    AssignmentTimeout,
)

__all__ = [
    "EngineConfig",
    "EngineConfigManager",
    "AssignmentError",
    "NotFoundError",
    "LeadNotFound",
    "BranchNotFound",
    "EmployeeNotFound",
    "NoEligibleCandidate",
    "RuleEvaluationError",
    "PersistenceConflict",
    "AuditWriteFailure",
    "AssignmentTimeout",
]
