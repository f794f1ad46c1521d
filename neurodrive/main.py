from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from . import __version__
from .api.routes import router as api_router
from .core.config import Settings, get_settings
from .core.logging import configure_logging, get_logger
from .core.request_logging import RequestLoggingMiddleware
from .dependencies import ServiceContainer, build_container
from .providers.mock_flights import router as providers_router

logger = get_logger(name=__name__)

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def create_app(settings: Settings | None = None, *, container: ServiceContainer | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.observability.log_level)

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        services = container or build_container(settings)
        await services.start()
        app.state.container = services
        logger.info("neurodrive_started", environment=settings.environment)
        try:
            yield
        finally:
            await services.aclose()
            logger.info("neurodrive_stopped")

    app = FastAPI(title="NeuroDrive Tool Orchestrator", version=__version__, lifespan=app_lifespan)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )
    app.include_router(api_router)
    app.include_router(providers_router)

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_request_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Unknown error"})

    @app.get("/", tags=["health"])
    async def root() -> dict[str, str]:
        return {"message": "NeuroDrive orchestrator running"}

    if settings.observability.prometheus_enabled:

        @app.get("/metrics", tags=["observability"])
        async def metrics() -> Response:
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
