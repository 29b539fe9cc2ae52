"""FastAPI application exposing the job manager over HTTP."""

import time
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog
from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

import dashboard
from config import get_settings
from logging_config import configure_logging
from models import isoformat, utcnow
from worker import JobManager

logger = structlog.get_logger()

AVAILABLE_ENDPOINTS = ["POST /jobs", "GET /jobs", "GET /stats", "GET /health"]

router = APIRouter()


class JobCreate(BaseModel):
    """Body of POST /jobs."""

    model_config = ConfigDict(populate_by_name=True)

    job_name: Optional[str] = Field(default=None, alias="jobName")
    arguments: Optional[List[str]] = None


def get_manager(request: Request) -> JobManager:
    return request.app.state.manager


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


# ---------------- Jobs ----------------
@router.post("/jobs", status_code=201)
def create_job(request: Request, payload: Optional[JobCreate] = Body(default=None)):
    if payload is None or not payload.job_name:
        return _error(400, "jobName is required")

    arguments = payload.arguments or []
    try:
        job_id = get_manager(request).start_job(payload.job_name, arguments)
    except Exception as e:
        logger.exception("request_failed", route="POST /jobs")
        return _error(500, "Failed to start job", str(e))

    return {
        "message": "Job started successfully",
        "jobId": job_id,
        "jobName": payload.job_name,
        "arguments": arguments,
    }


@router.get("/jobs")
def list_jobs(request: Request):
    try:
        jobs = [job.to_response() for job in get_manager(request).get_all_jobs()]
    except Exception as e:
        logger.exception("request_failed", route="GET /jobs")
        return _error(500, "Failed to retrieve jobs", str(e))
    return {"totalJobs": len(jobs), "jobs": jobs}


# ---------------- Stats ----------------
@router.get("/stats")
def job_stats(request: Request):
    try:
        stats = get_manager(request).get_job_stats()
    except Exception as e:
        logger.exception("request_failed", route="GET /stats")
        return _error(500, "Failed to retrieve statistics", str(e))
    return stats.to_dict()


# ---------------- Health ----------------
@router.get("/health")
def health(request: Request):
    return {
        "status": "healthy",
        "timestamp": isoformat(utcnow()),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }


def create_app(manager: Optional[JobManager] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        job_manager = app.state.manager
        logger.info(
            "api_starting",
            platform=job_manager.platform,
            simulator=job_manager.simulator_command.command,
            max_retries=job_manager.max_retries,
        )
        if not job_manager.simulator_command.is_available:
            logger.warning(
                "simulator_script_missing",
                script_path=job_manager.simulator_command.script_path,
                hint="run from a checkout or set WORKDIR",
            )
        yield
        logger.info("api_stopping")

    app = FastAPI(
        title="Simulator Job Manager",
        description="Launches simulator jobs, retries failures once and reports success patterns",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.manager = manager or JobManager(settings=settings)
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    app.include_router(dashboard.router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return JSONResponse(
                {"error": "Endpoint not found", "availableEndpoints": AVAILABLE_ENDPOINTS},
                status_code=404,
            )
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return _error(400, "Invalid request body", details)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return _error(500, "Internal server error", str(exc))

    return app


app = create_app()
