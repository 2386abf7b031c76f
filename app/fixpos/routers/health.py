from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.fixpos.core.error_catalog import ErrorCatalog
from app.fixpos.core.errors import error_response
from app.fixpos.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "trace_id": getattr(request.state, "trace_id", "")}


@router.get("/ready")
async def ready(request: Request, db=Depends(get_db)):
    """Ready once the settlement store answers a trivial query."""
    trace_id = getattr(request.state, "trace_id", "")
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        error = ErrorCatalog.DB_UNAVAILABLE
        return error_response(error.code, error.message, {"type": exc.__class__.__name__}, trace_id, error.status_code)
    return {"status": "ready", "trace_id": trace_id}
