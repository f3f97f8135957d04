# app/routers/health.py
from fastapi import APIRouter, Request

router = APIRouter()


@router.get("")
def health(request: Request):
    engine = getattr(request.app.state, "engine", None)
    return {
        "status": "ok",
        "engine_ready": engine is not None,
        "ai_configured": bool(engine and engine.router.is_configured()),
    }
