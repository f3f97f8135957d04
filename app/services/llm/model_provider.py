# app/services/llm/model_provider.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Protocol, Tuple, Type, TypeVar

import anthropic
import openai
from langchain_anthropic import ChatAnthropic
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

TRANSIENT_STATUS_CODES = {429, 500, 503}


class StructuredModelProvider(Protocol):
    """Generate an object matching `schema` from a prompt, on a named model."""

    async def generate(
        self,
        *,
        provider: str,
        model_id: str,
        schema: Type[T],
        system: str,
        prompt: str,
    ) -> T:
        ...


class TransientModelError(Exception):
    """Provider failure worth retrying (rate limit, 5xx, timeout)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def is_transient_error(exc: BaseException) -> bool:
    """
    Retry only on:
    - HTTP 429 / 500 / 503
    - timeouts (ours or the SDK's)
    Anything else (bad request, auth, schema errors) aborts immediately.
    """
    if isinstance(exc, TransientModelError):
        return True

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True

    if isinstance(exc, (openai.APITimeoutError, anthropic.APITimeoutError)):
        return True

    if isinstance(exc, (openai.RateLimitError, anthropic.RateLimitError)):
        return True

    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status in TRANSIENT_STATUS_CODES

    msg = str(exc).lower()
    return "429" in msg or "rate limit" in msg or "500" in msg or "503" in msg


class LangChainModelProvider:
    """
    Structured output via LangChain chat models.
    - openai    -> ChatOpenAI
    - anthropic -> ChatAnthropic
    SDK-level retries are disabled; the evaluator owns retry policy.
    """

    def __init__(self, api_key: str):
        self._api_key = api_key
        self._runnables: Dict[Tuple[str, str, str], Any] = {}

    def _chat_model(self, provider: str, model_id: str):
        if provider == "anthropic":
            return ChatAnthropic(
                model=model_id,
                api_key=self._api_key,
                temperature=0,
                max_retries=0,
            )

        if provider == "openai":
            kwargs: Dict[str, Any] = {
                "model": model_id,
                "api_key": self._api_key,
                "max_retries": 0,
            }
            # reasoning models (o1, o3, ...) reject temperature
            if not model_id.startswith("o"):
                kwargs["temperature"] = 0
            return ChatOpenAI(**kwargs)

        raise ValueError(f"Unknown AI provider: {provider}")

    def _structured(self, provider: str, model_id: str, schema: Type[BaseModel]):
        key = (provider, model_id, schema.__name__)
        if key not in self._runnables:
            self._runnables[key] = self._chat_model(provider, model_id).with_structured_output(
                schema,
                method="function_calling",
            )
        return self._runnables[key]

    async def generate(
        self,
        *,
        provider: str,
        model_id: str,
        schema: Type[T],
        system: str,
        prompt: str,
    ) -> T:
        logger.debug("structured call provider=%s model=%s schema=%s", provider, model_id, schema.__name__)
        llm = self._structured(provider, model_id, schema)
        raw = await llm.ainvoke([("system", system), ("human", prompt)])

        if isinstance(raw, schema):
            return raw
        # some providers hand back a dict for function-calling output
        return schema.model_validate(raw)
