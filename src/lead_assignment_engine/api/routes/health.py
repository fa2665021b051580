"""Health check routes."""

from fastapi import APIRouter, Request

from ... import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "healthy", "service": "lead-assignment-engine", "version": __version__}


@router.get("/ready")
async def ready(request: Request):
    """Readiness check - verifies database is accessible."""
    try:
        db = request.app.state.db
        db.branch_exists("__ready__")
        return {"status": "ready"}
    except Exception as e:
        return {"status": "not_ready", "detail": str(e)}
