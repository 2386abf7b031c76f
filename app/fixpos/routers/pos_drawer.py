from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.fixpos.core.error_catalog import ErrorCatalog
from app.fixpos.core.metrics import metrics
from app.fixpos.db.session import get_db
from app.fixpos.schemas.drawer import DrawerActionRequest, DrawerCurrentResponse, DrawerSessionSummary, DrawerWarning
from app.fixpos.services.drawer_gate import DrawerService, DrawerSession, entry_warning
from app.fixpos.services.idempotency import IdempotencyService, extract_idempotency_key
from app.fixpos.services.pricing import money

router = APIRouter()


def session_summary(session: DrawerSession) -> DrawerSessionSummary:
    return DrawerSessionSummary(
        id=session.id,
        business_date=session.date,
        status=session.status,
        opening_float=money(session.opening_float),
    )


def drawer_warning(session: DrawerSession | None) -> DrawerWarning | None:
    warning = entry_warning(session)
    return DrawerWarning(**warning) if warning else None


@router.get("/fixpos/pos/drawer/current", response_model=DrawerCurrentResponse)
async def get_current_drawer(db=Depends(get_db)):
    session = await DrawerService(db).get_open_session_for_today()
    return DrawerCurrentResponse(
        session=session_summary(session) if session else None,
        warning=drawer_warning(session),
    )


@router.post("/fixpos/pos/drawer/actions", response_model=DrawerSessionSummary)
async def drawer_action(request: Request, payload: DrawerActionRequest, db=Depends(get_db)):
    context = None
    idempotency_key = extract_idempotency_key(request.headers, required=False)
    if idempotency_key:
        context, replay = await IdempotencyService(db).start(
            endpoint=str(request.url.path),
            method=request.method,
            idempotency_key=idempotency_key,
            request_hash=IdempotencyService.fingerprint(payload.model_dump(mode="json")),
        )
        if replay:
            metrics.increment_idempotency_replay()
            return JSONResponse(
                status_code=replay.status_code,
                content=replay.response_body,
                headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
            )
        request.state.idempotency = context

    session = await DrawerService(db).open_session(
        payload.opening_float,
        denominations=payload.denominations,
        opened_by=payload.opened_by,
    )
    response = session_summary(session)
    if context is not None:
        await context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response
