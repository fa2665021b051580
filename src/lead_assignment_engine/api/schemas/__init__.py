"""Request and response schemas."""

from .assignment import (
    AssignLeadRequest,
    ManualAssignRequest,
    AssignmentResponse,
    AssignmentHistoryResponse,
    DecisionRecord,
    ErrorResponse,
)

__all__ = [
    "AssignLeadRequest",
    "ManualAssignRequest",
    "AssignmentResponse",
    "AssignmentHistoryResponse",
    "DecisionRecord",
    "ErrorResponse",
]
