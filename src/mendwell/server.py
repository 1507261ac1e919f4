"""
Mendwell API server — FastAPI application hosting the self-healing runtime.

Endpoints:
    GET  /                                 Client page (static build or fallback dashboard)
    GET  /health                           Health score, checks and performance (200 / 503)

Systems:
    GET  /api/systems/diagnostics          Sub-scores, bug catalog, recommendations
    GET  /api/systems/connection           Connection healer counters
    GET  /api/systems/performance          Request latency percentiles and rates
    POST /api/systems/repair/ultimate-vite Write the dev-server bypass
    POST /api/systems/repair/emergency     Repair every critical bug now
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from mendwell.config import MendwellConfig, load_config
from mendwell.core.types import CheckStatus
from mendwell.resilience.orchestrator import FALLBACK_PAGE
from mendwell.runtime import Runtime

logger = logging.getLogger("mendwell.server")

MAX_LOG_LINE = 80


class DevServerRepairResponse(BaseModel):
    success: bool = True
    solution: dict[str, Any] = Field(default_factory=dict)
    message: str


class EmergencyRepairResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str


def _runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def _now() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime: Runtime = app.state.runtime
    logger.info(f"Mendwell starting on {runtime.config.host}:{runtime.config.port}")
    await runtime.start()
    yield
    await runtime.stop()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(config: MendwellConfig | None = None, runtime: Runtime | None = None) -> FastAPI:
    config = config or (runtime.config if runtime else load_config())
    runtime = runtime or Runtime(config)

    app = FastAPI(
        title="Mendwell",
        version=config.version,
        description="Self-monitoring and self-healing runtime",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_methods=["*"], allow_headers=["*"],
    )

    # ==================================================================
    # Middleware
    # ==================================================================

    if not config.is_production:
        @app.middleware("http")
        async def track_performance(request: Request, call_next):
            rt = _runtime(request)
            rt.metrics.sample_memory()
            start = time.perf_counter()
            status_code = 500
            try:
                response = await call_next(request)
                status_code = response.status_code
                return response
            finally:
                rt.metrics.record_request((time.perf_counter() - start) * 1000, status_code)

    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        healer = _runtime(request).connection_healer
        healer.record_http_request()
        healer.connection_opened()
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            healer.connection_closed()
        path = request.url.path
        if path.startswith("/api"):
            duration_ms = int((time.perf_counter() - start) * 1000)
            line = f"{request.method} {path} {response.status_code} in {duration_ms}ms"
            if len(line) > MAX_LOG_LINE:
                line = line[:MAX_LOG_LINE - 1] + "…"
            logger.info(line)
        return response

    @app.exception_handler(Exception)
    async def track_unhandled_errors(request: Request, exc: Exception):
        logger.error(f"Request error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        rt = _runtime(request)
        rt.health_monitor.record_error()
        rt.connection_healer.record_error()
        return JSONResponse(status_code=500, content={
            "error": "Internal Server Error",
            "message": "Something went wrong" if config.is_production else str(exc),
            "timestamp": _now(),
        })

    # ==================================================================
    # Health
    # ==================================================================

    @app.get("/health")
    async def health(request: Request):
        rt = _runtime(request)
        status = rt.health_monitor.get_health_status()
        metrics = rt.health_monitor.get_metrics()
        return JSONResponse(
            status_code=200 if status.status == CheckStatus.HEALTHY else 503,
            content={
                "status": status.status.value,
                "timestamp": _now(),
                "health": {
                    "score": status.score,
                    "checks": [c.to_dict() for c in status.checks],
                },
                "performance": rt.metrics.get_detailed_stats(),
                "uptime": metrics.uptime_ms / 1000,
                "memory": metrics.memory_usage,
                "version": config.version,
            },
        )

    # ==================================================================
    # Client page
    # ==================================================================

    @app.get("/", include_in_schema=False)
    async def index():
        if config.static_dir is not None:
            index_path = config.static_dir / "index.html"
            if index_path.is_file():
                return FileResponse(index_path)
        return HTMLResponse(FALLBACK_PAGE)

    # ==================================================================
    # Systems diagnostics
    # ==================================================================

    @app.get("/api/systems/diagnostics")
    async def diagnostics(request: Request):
        try:
            return _runtime(request).diagnostics.build_diagnostics()
        except Exception as e:
            logger.error(f"Diagnostics failed: {e}", exc_info=True)
            return JSONResponse(status_code=500, content={"error": "Failed to generate diagnostics"})

    @app.get("/api/systems/connection")
    async def connection_health(request: Request):
        return _runtime(request).connection_healer.get_health().to_dict()

    @app.get("/api/systems/performance")
    async def performance(request: Request):
        return _runtime(request).metrics.get_detailed_stats()

    @app.post("/api/systems/repair/ultimate-vite", response_model=DevServerRepairResponse)
    async def repair_dev_server(request: Request):
        try:
            solution = _runtime(request).diagnostics.trigger_dev_server_solution()
        except Exception as e:
            logger.error(f"Dev server solution failed: {e}", exc_info=True)
            return JSONResponse(status_code=500, content={
                "success": False,
                "error": "Failed to implement dev server solution",
            })
        return DevServerRepairResponse(solution=solution, message="Dev server solution implemented")

    @app.post("/api/systems/repair/emergency", response_model=EmergencyRepairResponse)
    async def emergency_repair(request: Request):
        try:
            await _runtime(request).diagnostics.trigger_emergency_repair()
        except Exception as e:
            logger.error(f"Emergency repair failed: {e}", exc_info=True)
            return JSONResponse(status_code=500, content={
                "success": False,
                "error": "Emergency repair failed",
            })
        return EmergencyRepairResponse(message="Emergency repair completed", timestamp=_now())

    return app
