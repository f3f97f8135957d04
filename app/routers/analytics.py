# app/routers/analytics.py
from typing import Any, Dict

from fastapi import APIRouter, Request

from app.services.llm.llm_analytics import summarize

router = APIRouter()


@router.get("/llm")
def get_llm_analytics(request: Request) -> Dict[str, Any]:
    engine = request.app.state.engine
    return {
        "analytics": engine.analytics.get_analytics().model_dump(),
        "cache": engine.cache.stats().as_dict(),
    }


@router.get("/llm/summary")
def get_llm_summary(request: Request) -> Dict[str, Any]:
    engine = request.app.state.engine
    return summarize(engine.analytics.get_analytics(), engine.cache.stats().as_dict())


@router.delete("/llm")
def reset_llm_analytics(request: Request) -> Dict[str, Any]:
    """Reset the call log and drop every cached judgment."""
    engine = request.app.state.engine
    engine.analytics.reset()
    engine.cache.clear()
    return {"status": "OK", "message": "LLM analytics and cache cleared"}
