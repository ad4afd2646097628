"""Flipbook — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, the REST routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Configuration** comes from :data:`~flipbook.core.config.config`.  The
  inference credential is validated per request by
  :meth:`~flipbook.core.config.PipelineSettings.from_config`, so a server
  without a token still starts and answers conversions with a 503.
- **Frame generation** is performed by a fresh
  :class:`~flipbook.core.pipeline.FramePipeline` per request.  The pipeline
  blocks (upstream calls and sleeps), so it runs in Starlette's threadpool
  and only ties up its own request.
- **Upstream connections** share one ``httpx.Client`` created in the
  lifespan handler and closed on shutdown.
- **Errors** are :class:`~flipbook.core.errors.FlipbookError` subclasses,
  translated to ``{"error": ..., "details": ...}`` bodies by one exception
  handler.  ``details`` is dropped in production mode.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/``                         Serve the main HTML page
GET       ``/api/health``               Version and configuration status
POST      ``/api/convert``              Generate an image sequence
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    flipbook

Direct invocation::

    python -m flipbook.api.main
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from flipbook import __version__
from flipbook.api.models import ConvertRequest, ConvertResponse, ErrorResponse, HealthResponse
from flipbook.core.config import PipelineSettings, config, validate_token
from flipbook.core.errors import (
    ConfigError,
    FlipbookError,
    InvalidInputError,
    UnsupportedMediaTypeError,
)
from flipbook.core.pipeline import FramePipeline

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve paths from the global configuration instance.
# ---------------------------------------------------------------------------
STATIC_DIR: Path = config.static_dir
TEMPLATES_DIR: Path = config.templates_dir

PipelineFactory = Callable[[], FramePipeline]

# ---------------------------------------------------------------------------
# Application lifecycle — shared HTTP client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the ``httpx.Client`` shared by all pipelines and stores it
        on ``app.state``.  Logs whether the inference credential is usable;
        a missing credential is not fatal at startup.

    On shutdown:
        Closes the client and its connection pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    app.state.http_client = httpx.Client(timeout=config.request_timeout_seconds)
    try:
        validate_token(config.hf_api_token)
        logger.info(f"Inference API configured for model {config.model_id}.")
    except ConfigError as e:
        logger.warning(f"{e.message}; /api/convert will answer 503 until it is set.")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    app.state.http_client.close()
    logger.info("HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Flipbook",
    description="Turns a text prompt into a short sequence of generated frames.",
    version=__version__,
    lifespan=lifespan,
)

# The frontend may be served from a different origin during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


# ---------------------------------------------------------------------------
# Error translation.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, message: str, details: str | None) -> JSONResponse:
    """Build a JSON error response, hiding details in production mode."""
    body = ErrorResponse(
        error=message,
        details=None if config.is_production else details,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(FlipbookError)
async def flipbook_error_handler(request: Request, exc: FlipbookError) -> JSONResponse:
    """Translate any :class:`FlipbookError` into its HTTP status and body.

    Args:
        request: The request that failed.
        exc: The raised error.

    Returns:
        JSON error response with the error's ``status_code``.
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _error_response(exc.status_code, exc.message, exc.details)


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_pipeline_factory(request: Request) -> PipelineFactory:
    """Return a callable that builds a pipeline for the current request.

    Building is deferred so the route can validate the request first; the
    credential check inside :meth:`PipelineSettings.from_config` then runs
    before any upstream call is made.

    Args:
        request: The incoming request (used to reach ``app.state``).

    Returns:
        Zero-argument factory returning a :class:`FramePipeline`.
    """

    def build() -> FramePipeline:
        settings = PipelineSettings.from_config(config)
        return FramePipeline(settings, request.app.state.http_client)

    return build


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    """Serve the application HTML page.

    Returns:
        The HTML content of the application page.

    Raises:
        HTTPException: 404 if ``index.html`` is not found.
    """
    index_path = TEMPLATES_DIR / "index.html"
    if index_path.exists():
        return HTMLResponse(content=index_path.read_text(encoding="utf-8"))
    raise HTTPException(status_code=404, detail="index.html not found")


@app.get("/api/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report the API version and whether the credential is usable."""
    try:
        validate_token(config.hf_api_token)
        configured = True
    except ConfigError:
        configured = False
    return HealthResponse(
        version=__version__,
        configured=configured,
        frame_count=config.frame_count,
    )


@app.post(
    "/api/convert",
    response_model=ConvertResponse,
    responses={
        400: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def convert(
    request: Request,
    pipeline_factory: PipelineFactory = Depends(get_pipeline_factory),
) -> ConvertResponse:
    """Generate an image sequence for a text prompt.

    This endpoint:

    1. Requires ``Content-Type: application/json`` (415 otherwise).
    2. Parses ``{"text": ...}`` and rejects empty text (400).
    3. Builds a pipeline, validating the credential (503 if unusable).
    4. Generates every frame sequentially; any frame failure aborts the
       request with that frame's error (429/500/503/504).

    Args:
        request: The raw request, read by hand for content-type checks.
        pipeline_factory: Builds the :class:`FramePipeline` for this request.

    Returns:
        :class:`ConvertResponse` with the ordered base64 frames.

    Raises:
        FlipbookError: Translated to an error response by
            :func:`flipbook_error_handler`.
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type.lower():
        raise UnsupportedMediaTypeError("Content-Type must be application/json")

    try:
        payload = await request.json()
    except ValueError as e:
        raise InvalidInputError("Request body must be valid JSON", details=str(e)) from e

    if not isinstance(payload, dict):
        raise InvalidInputError("Request body must be a JSON object")

    try:
        req = ConvertRequest.model_validate(payload)
    except ValidationError as e:
        raise InvalidInputError("Text must be a string", details=str(e)) from e

    if not req.text:
        raise InvalidInputError("Text is required")

    pipeline = pipeline_factory()

    try:
        result = await run_in_threadpool(pipeline.generate, req.text)
    except FlipbookError:
        raise
    except Exception as e:
        logger.exception("Unexpected error during generation")
        raise FlipbookError(
            "Failed to generate content",
            details=traceback.format_exc(),
        ) from e

    return ConvertResponse(output=result.frames)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~flipbook.core.config.config` (which
    loads from ``FLIPBOOK_SERVER_HOST`` and ``FLIPBOOK_SERVER_PORT``
    environment variables).  Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``flipbook`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "flipbook.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
