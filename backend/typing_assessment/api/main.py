"""
FastAPI main application.

This is the entry point for the REST API. Each assessment is served by its
own ``AssessmentOrchestrator`` held in an in-memory registry; the frontend
posts input events and polls the snapshot.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..agents.orchestrator import AssessmentOrchestrator
from ..agents.result_reconciler import ResultReconcilerAgent
from ..config import Settings, configure_logging
from ..core.errors import (
    AssessmentError,
    InvalidStateError,
    MissingCandidateError,
    NetworkError,
    NotFoundError,
    NotReadyError,
    ValidationError,
)
from ..core.scheduler import AsyncioTickScheduler, TickScheduler
from ..utils.grading_client import GradingServiceClient

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

ERROR_STATUS = {
    NotReadyError: 409,
    MissingCandidateError: 403,
    InvalidStateError: 409,
    ValidationError: 422,
    NotFoundError: 404,
    NetworkError: 502,
}


# ---------------------
# Pydantic Models (API Layer)
# ---------------------

class AssessmentCreateRequest(BaseModel):
    """Open an assessment for a typing test link."""
    test_link: str = Field(..., min_length=1)
    candidate_id: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {"test_link": "typing_1718000000000_ab12cd", "candidate_id": "665f1c..."}
        }
    }


class StartRequest(BaseModel):
    duration_seconds: Optional[int] = Field(default=None, gt=0)


class InputRequest(BaseModel):
    """Current value of the input field after one edit."""
    typed_text: str = ""
    delete_key: bool = False


# ---------------------
# Routes
# ---------------------

router = APIRouter()


def _registry(request: Request) -> Dict[str, AssessmentOrchestrator]:
    return request.app.state.assessments


def _get_assessment(request: Request, assessment_id: str) -> AssessmentOrchestrator:
    orchestrator = _registry(request).get(assessment_id)
    if orchestrator is None:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return orchestrator


async def _evict_finished(request: Request) -> None:
    """Close and drop assessments whose result landed longer ago than the retention."""
    settings: Settings = request.app.state.settings
    cutoff = time.monotonic() - settings.completed_retention_seconds
    registry = _registry(request)
    expired = [
        assessment_id for assessment_id, orchestrator in registry.items()
        if orchestrator.finished_at is not None and orchestrator.finished_at <= cutoff
    ]
    for assessment_id in expired:
        await registry.pop(assessment_id).aclose()
        logger.info(f"Assessment {assessment_id} evicted after completion")


@router.get("/health", tags=["System"])
async def health_check(request: Request):
    """Check API health."""
    settings: Settings = request.app.state.settings
    return {
        "status": "healthy",
        "version": API_VERSION,
        "grading_api_url": settings.grading_api_url,
        "active_assessments": len(_registry(request)),
    }


@router.post("/api/assessments", tags=["Assessments"])
async def create_assessment(body: AssessmentCreateRequest, request: Request):
    """Fetch a typing test and open an idle assessment for the candidate."""
    app = request.app
    client: GradingServiceClient = app.state.client
    settings: Settings = app.state.settings

    await _evict_finished(request)
    test = await asyncio.to_thread(client.fetch_test, body.test_link, body.candidate_id)

    orchestrator = AssessmentOrchestrator(
        test,
        body.candidate_id,
        client=client,
        reconciler=ResultReconcilerAgent(
            client,
            max_attempts=settings.submission_max_attempts,
            backoff_seconds=settings.submission_backoff_seconds,
        ),
        scheduler=app.state.scheduler_factory(),
    )
    assessment_id = uuid4().hex[:12]
    _registry(request)[assessment_id] = orchestrator
    logger.info(f"Assessment {assessment_id} opened for test {test.test_id}")

    return {
        "assessment_id": assessment_id,
        "test": test.to_dict(),
        "snapshot": orchestrator.snapshot().to_dict(),
    }


@router.post("/api/assessments/{assessment_id}/start", tags=["Assessments"])
async def start_assessment(assessment_id: str, body: StartRequest, request: Request):
    """Start the countdown."""
    orchestrator = _get_assessment(request, assessment_id)
    session = await orchestrator.start(body.duration_seconds)
    return {
        "session_id": session.session_id,
        "session": session.to_dict(),
        "snapshot": orchestrator.snapshot().to_dict(),
    }


@router.post("/api/assessments/{assessment_id}/input", tags=["Assessments"])
async def submit_input(assessment_id: str, body: InputRequest, request: Request):
    """Apply one edit of the input field."""
    orchestrator = _get_assessment(request, assessment_id)
    applied = await orchestrator.input(body.typed_text, delete_key=body.delete_key)
    return {"applied": applied, "snapshot": orchestrator.snapshot().to_dict()}


@router.post("/api/assessments/{assessment_id}/restart", tags=["Assessments"])
async def restart_assessment(assessment_id: str, request: Request):
    """Discard the current attempt and return to idle."""
    orchestrator = _get_assessment(request, assessment_id)
    await orchestrator.restart()
    return {"snapshot": orchestrator.snapshot().to_dict()}


@router.get("/api/assessments/{assessment_id}", tags=["Assessments"])
async def get_assessment(assessment_id: str, request: Request):
    """Current snapshot for rendering."""
    orchestrator = _get_assessment(request, assessment_id)
    return orchestrator.snapshot().to_dict()


@router.delete("/api/assessments/{assessment_id}", tags=["Assessments"])
async def delete_assessment(assessment_id: str, request: Request):
    """Close an assessment and release it."""
    orchestrator = _get_assessment(request, assessment_id)
    await orchestrator.aclose()
    _registry(request).pop(assessment_id, None)
    logger.info(f"Assessment {assessment_id} closed")
    return {"deleted": assessment_id}


@router.get("/api/assessments/{assessment_id}/audit", tags=["Audit"])
async def get_audit_log(assessment_id: str, request: Request):
    orchestrator = _get_assessment(request, assessment_id)
    return {"audit_log": orchestrator.get_audit_log()}


# ---------------------
# Error Handling
# ---------------------

async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    if not exc.user_visible or status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    content = exc.to_dict() if exc.user_visible else {
        "code": exc.code,
        "message": type(exc).default_message,
    }
    return JSONResponse(status_code=status_code, content=content)


# ---------------------
# FastAPI Application
# ---------------------

def create_app(
    settings: Optional[Settings] = None,
    client: Optional[GradingServiceClient] = None,
    scheduler_factory: Optional[Callable[[], TickScheduler]] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Defaults to ``Settings.from_env()``
        client: Grading service client; built from settings if omitted
        scheduler_factory: Creates one tick scheduler per assessment
    """
    settings = settings or Settings.from_env()
    client = client or GradingServiceClient(
        settings.grading_api_url, timeout=settings.grading_timeout_seconds
    )
    if scheduler_factory is None:
        def scheduler_factory() -> TickScheduler:
            return AsyncioTickScheduler(interval=settings.tick_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown."""
        configure_logging(settings.log_level)
        logger.info("Typing assessment API starting...")
        yield
        assessments: Dict[str, Any] = app.state.assessments
        await asyncio.gather(
            *(o.aclose() for o in assessments.values()), return_exceptions=True
        )
        assessments.clear()
        logger.info("Typing assessment API shutting down...")

    app = FastAPI(
        title="Typing Assessment Engine",
        description="""
        Timed typing assessments for recruitment.

        ## Features
        - **Live feedback**: per-character correctness, WPM and accuracy
        - **Countdown**: selectable duration, auto-submit on expiry
        - **Reliable submission**: one result per attempt, bounded retry
        """,
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.client = client
    app.state.scheduler_factory = scheduler_factory
    app.state.assessments = {}

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AssessmentError, assessment_error_handler)
    app.include_router(router)
    return app


app = create_app()


# ---------------------
# Run directly for development
# ---------------------

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("typing_assessment.api.main:app", host="0.0.0.0", port=8000, reload=True)
