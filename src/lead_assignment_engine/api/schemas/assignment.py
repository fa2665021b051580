"""Pydantic models for assignment requests and responses."""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class AssignLeadRequest(BaseModel):
    lead_id: str = Field(..., min_length=1)
    branch_id: str = Field(..., min_length=1)
    force_reassign: bool = False


class ManualAssignRequest(BaseModel):
    branch_id: str = Field(..., min_length=1)
    employee_id: str = Field(..., min_length=1)
    assigned_by: Optional[str] = None


class AssignmentResponse(BaseModel):
    success: bool
    outcome: str
    lead_id: str
    assigned_to: Optional[str] = None
    assigned_name: Optional[str] = None
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    method: Optional[str] = None
    audit_recorded: bool = True
    message: str = ""


class DecisionRecord(BaseModel):
    id: str
    lead_id: str
    branch_id: str
    employee_id: str
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    method: str
    is_manual_override: bool = False
    assigned_by: Optional[str] = None
    decided_at: datetime


class AssignmentHistoryResponse(BaseModel):
    lead_id: str
    decisions: List[DecisionRecord]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: str
