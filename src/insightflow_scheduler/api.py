# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
HTTP surface for the scheduler and the progressive analysis.

Endpoints:
    GET  /api/documents/rate-limit-status    Read-only load report for UI polling
    POST /api/documents/analyze-progressive  NDJSON stream: partial, then final

Scheduler rejections map to typed HTTP errors carrying a machine-readable
``code`` and, where retrying makes sense, ``retry_after`` in seconds.

Example:
    >>> scheduler = RateLimitedScheduler()
    >>> orchestrator = ProgressiveAnalysisOrchestrator(scheduler, MyAnalyzer())
    >>> app = create_app(scheduler, orchestrator)
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from logging.config import dictConfig
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from .analysis.models import DocumentRef
from .analysis.progressive import PhaseUpdate, ProgressiveAnalysisOrchestrator
from .exceptions import (
    DailyLimitExceededError,
    OverloadedError,
    RequestTimeoutError,
    SchedulerError,
)
from .scheduler.scheduler import RateLimitedScheduler
from .types.rate_limit import RateLimitStatus

logger = logging.getLogger(__name__)

DEFAULT_CALLER_ID = "anonymous"
CALLER_HEADER = "x-user-id"

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        }
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
}

# Most specific first: OverloadedError must win over its SchedulerError base.
_ERROR_RESPONSES: list[tuple[type[SchedulerError], int, str, int | None]] = [
    (DailyLimitExceededError, 429, "RATE_LIMITED", 60),
    (OverloadedError, 503, "SERVICE_OVERLOADED", 300),
    (RequestTimeoutError, 408, "REQUEST_TIMEOUT", None),
]


class DocumentPayload(BaseModel):
    id: str
    filename: str = ""
    document_type: str = "GENERAL"
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProgressiveAnalysisRequest(BaseModel):
    documents: list[DocumentPayload] = Field(default_factory=list)
    user_context: dict[str, Any] | None = None


def build_recommendations(status: RateLimitStatus) -> list[str]:
    """User-facing hints derived from the current load."""
    recommendations: list[str] = []
    if status.requests_per_day.remaining < 100:
        recommendations.append(
            "Approaching daily limit. Consider upgrading to Developer Tier for higher limits."
        )
    if status.queue_length > 10:
        minutes = math.ceil(status.estimated_wait_ms / 60000)
        recommendations.append(
            f"High demand detected. Expected wait time: {minutes} minutes."
        )
    if status.requests_per_minute.remaining == 0:
        recommendations.append(
            "Rate limit reached. Requests are being queued automatically."
        )
    if status.queue_length == 0 and status.requests_per_minute.remaining > 0:
        recommendations.append("System ready for analysis. No wait time expected.")
    return recommendations


def scheduler_error_response(exc: SchedulerError) -> JSONResponse:
    """Translate a scheduler rejection into its HTTP representation."""
    status_code, code, retry_after = 500, "SCHEDULER_ERROR", None
    for error_type, mapped_status, mapped_code, mapped_retry in _ERROR_RESPONSES:
        if isinstance(exc, error_type):
            status_code, code, retry_after = mapped_status, mapped_code, mapped_retry
            break

    content: dict[str, Any] = {"success": False, "error": str(exc), "code": code}
    headers: dict[str, str] = {}
    if retry_after is not None:
        content["retry_after"] = retry_after
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _caller_id(request: Request) -> str:
    return (
        request.headers.get(CALLER_HEADER)
        or request.query_params.get("user_id")
        or request.query_params.get("userId")
        or DEFAULT_CALLER_ID
    )


def _ndjson(update: PhaseUpdate) -> str:
    return json.dumps(update.to_dict(), default=str) + "\n"


def create_app(
    scheduler: RateLimitedScheduler,
    orchestrator: ProgressiveAnalysisOrchestrator,
    *,
    logging_config: dict[str, Any] | None = None,
) -> FastAPI:
    """
    Build the FastAPI application around an existing scheduler.

    The application's lifespan starts and stops the scheduler.

    Args:
        scheduler: Process-wide scheduler instance
        orchestrator: Orchestrator sharing that scheduler
        logging_config: Optional logging.config.dictConfig mapping,
            e.g. LOGGING_CONFIG
    """
    if logging_config is not None:
        dictConfig(logging_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with scheduler:
            yield

    app = FastAPI(title="InsightFlow Scheduler", lifespan=lifespan)
    app.state.scheduler = scheduler
    app.state.orchestrator = orchestrator

    @app.exception_handler(SchedulerError)
    async def handle_scheduler_error(request: Request, exc: SchedulerError) -> JSONResponse:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return scheduler_error_response(exc)

    @app.get("/api/documents/rate-limit-status")
    async def rate_limit_status(request: Request) -> dict[str, Any]:
        status = scheduler.status()
        return {
            "success": True,
            "status": status.to_dict(),
            "user_queue_position": scheduler.queue_position(_caller_id(request)),
            "recommendations": build_recommendations(status),
        }

    @app.post("/api/documents/analyze-progressive")
    async def analyze_progressive(
        body: ProgressiveAnalysisRequest, request: Request
    ) -> StreamingResponse:
        if not body.documents:
            raise HTTPException(status_code=400, detail="No documents provided")

        documents = [DocumentRef(**doc.model_dump()) for doc in body.documents]
        updates = orchestrator.run(
            documents, body.user_context, caller_id=_caller_id(request)
        )
        # Phase 1 runs before the response starts so its rejections become
        # proper HTTP errors.
        first = await updates.__anext__()

        async def stream() -> AsyncIterator[str]:
            try:
                yield _ndjson(first)
                async for update in updates:
                    yield _ndjson(update)
            finally:
                await updates.aclose()

        return StreamingResponse(stream(), media_type="application/x-ndjson")

    return app


__all__ = [
    "LOGGING_CONFIG",
    "DocumentPayload",
    "ProgressiveAnalysisRequest",
    "build_recommendations",
    "create_app",
    "scheduler_error_response",
]
