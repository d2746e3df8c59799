"""FastAPI server for the Hope Basketball camp agent.

Run with:
    uvicorn camp_agent.server:app --reload --host 0.0.0.0 --port 3001
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from camp_agent import __version__
from camp_agent.api.routes import router
from camp_agent.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from camp_agent.orchestrator import create_orchestrator

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise shared resources ────────────────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the orchestrator (session store + compiled graph) once."""
    logger.info("Building conversation orchestrator…")
    application.state.orchestrator = create_orchestrator()
    logger.info("Orchestrator ready.")
    yield


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Hope Basketball Camp Agent",
    description=(
        "Assistant d'inscription aux camps Hope Basketball Québec — "
        "camps, places disponibles, inscriptions et paiements."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is echoed in the ``X-Request-ID`` response header.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Validation errors ────────────────────────────────────────────────
@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> Response:
    """Report a malformed chat body as 400 like any other invalid message.

    Other endpoints keep FastAPI's default 422.
    """
    if request.url.path != "/chat":
        return await request_validation_exception_handler(request, exc)
    errors = exc.errors()
    reason = errors[0].get("msg", "invalid body") if errors else "invalid body"
    logger.info("[%s] Rejected chat request: %s", getattr(request.state, "request_id", "?"), reason)
    return JSONResponse(status_code=400, content={"detail": f"Requête invalide: {reason}"})


app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Hope Basketball Camp Agent",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    logger.info("Starting camp agent API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "camp_agent.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
