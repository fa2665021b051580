"""Lead assignment routes."""

import logging
from fastapi import APIRouter, HTTPException, Request

from ...core.errors import AssignmentTimeout, NotFoundError
from ...routing.engine import AssignmentOutcome
from ..schemas.assignment import (
    AssignLeadRequest,
    ManualAssignRequest,
    AssignmentResponse,
    AssignmentHistoryResponse,
    DecisionRecord,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/leads", tags=["assignment"])

_ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


def _error(status_code: int, error: str, detail: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"success": False, "error": error, "detail": detail},
    )


@router.post("/assign", response_model=AssignmentResponse, responses=_ERROR_RESPONSES)
def assign(body: AssignLeadRequest, request: Request):
    """Assign a lead through relationship, rules, then round-robin fallback.

    Already-assigned leads come back as a successful no-op unless
    ``force_reassign`` is set.
    """
    engine = request.app.state.engine
    try:
        result = engine.assign_lead(
            body.lead_id,
            body.branch_id,
            force_reassign=body.force_reassign,
            timeout=request.app.state.assign_timeout,
        )
    except NotFoundError as e:
        raise _error(404, "not_found", str(e))
    except AssignmentTimeout as e:
        raise _error(504, "timeout", str(e))
    except Exception:
        logger.exception("Lead assignment error")
        raise _error(500, "server_error", "Internal processing error")

    if result.outcome == AssignmentOutcome.NO_CANDIDATE:
        raise _error(422, "no_eligible_candidate", result.message)
    return AssignmentResponse(**result.to_dict())


@router.post("/{lead_id}/manual-assign", response_model=AssignmentResponse, responses=_ERROR_RESPONSES)
def manual_assign(lead_id: str, body: ManualAssignRequest, request: Request):
    """Assign a lead to a chosen employee, replacing any current owner."""
    engine = request.app.state.engine
    try:
        result = engine.manual_assign(
            lead_id, body.branch_id, body.employee_id, assigned_by=body.assigned_by
        )
    except NotFoundError as e:
        raise _error(404, "not_found", str(e))
    except Exception:
        logger.exception("Manual assignment error")
        raise _error(500, "server_error", "Internal processing error")
    return AssignmentResponse(**result.to_dict())


@router.get("/{lead_id}/assignments", response_model=AssignmentHistoryResponse, responses=_ERROR_RESPONSES)
def history(lead_id: str, branch_id: str, request: Request):
    """Ledger entries for a lead, oldest first."""
    db = request.app.state.db
    if db.get_lead(lead_id, branch_id) is None:
        raise _error(404, "not_found", f"Lead {lead_id} not found in branch {branch_id}")

    decisions = [
        DecisionRecord(**d.to_dict())
        for d in db.history(lead_id)
        if d.branch_id == branch_id
    ]
    return AssignmentHistoryResponse(lead_id=lead_id, decisions=decisions)
