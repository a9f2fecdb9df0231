"""FastAPI app factory.

The app serves the runtime's own endpoints under ``/__/`` and hands every other
request to the :class:`~cloud_triggers.server.dispatcher.Dispatcher`.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from cloud_triggers import __version__
from cloud_triggers.logging import configure_logging
from cloud_triggers.manifest import render_manifest, runtime_manifest
from cloud_triggers.registry import FunctionsContext
from cloud_triggers.server.config import RuntimeSettings
from cloud_triggers.server.dispatcher import FUNCTION_HEADER, Dispatcher

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _log_path(request: Request) -> str:
    path = request.url.path
    if path in ("", "/"):
        function = request.headers.get(FUNCTION_HEADER)
        if function:
            return f"/{function}"
    return path


def create_app(context: FunctionsContext, settings: RuntimeSettings | None = None) -> FastAPI:
    settings = settings if settings is not None else RuntimeSettings()

    # Leave logging alone when the host (a test runner, an embedding app) set it up.
    if not logging.getLogger().handlers:
        configure_logging(settings.log_level)

    app = FastAPI(
        title="cloud-triggers",
        version=__version__,
        # Every other path may be a function name.
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )

    app.state.settings = settings
    app.state.context = context
    dispatcher = Dispatcher(context, settings)
    app.state.dispatcher = dispatcher

    if settings.cors_enabled:
        # Emulator only (FIREBASE_DEBUG_FEATURES.enableCors).
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s [%s]",
            request.method,
            _log_path(request),
            response.status_code,
            extra={
                "method": request.method,
                "path": _log_path(request),
                "status": response.status_code,
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response

    @app.get("/__/health", response_class=PlainTextResponse)
    def health() -> str:
        return "OK"

    @app.api_route("/__/quitquitquit", methods=ALL_METHODS)
    def quitquitquit(request: Request) -> Response:
        if request.method not in ("GET", "POST"):
            return Response(status_code=405, headers={"Allow": "GET, POST"})
        logger.info("Received shutdown signal via /__/quitquitquit")
        return PlainTextResponse("OK")

    if settings.control_api_enabled:

        @app.api_route("/__/functions.yaml", methods=ALL_METHODS)
        def functions_manifest(request: Request) -> Response:
            if request.method != "GET":
                return Response(status_code=405, headers={"Allow": "GET"})
            return PlainTextResponse(
                render_manifest(runtime_manifest(context)),
                media_type="text/yaml",
            )

    @app.api_route("/{full_path:path}", methods=ALL_METHODS)
    async def dispatch(request: Request, full_path: str) -> Response:
        return await dispatcher.dispatch(request)

    logger.info(
        "Function server ready",
        extra={
            "functions": context.names,
            "mode": dispatcher.mode.value,
            "control_api": settings.control_api_enabled,
        },
    )
    return app
