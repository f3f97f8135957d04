# app/routers/events.py
from fastapi import APIRouter, HTTPException, Request

from app.core.errors import AppError
from app.services.rules.rule_models import ProcessEventsRequest, ProcessResult

router = APIRouter()


# =========================================================
# POST /events/process
# =========================================================
@router.post("/process", response_model=ProcessResult)
async def process_events(request: Request, payload: ProcessEventsRequest):
    """
    Evaluate every active rule against the given events.
    - already-granted (rule, event) pairs are skipped
    - per-pair AI failures are listed in `errors`, the batch still completes
    """
    engine = request.app.state.engine
    try:
        return await engine.evaluator.process_events(payload.event_ids)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/process-all", response_model=ProcessResult)
async def process_all_events(request: Request):
    engine = request.app.state.engine
    try:
        return await engine.evaluator.process_events()
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
