import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from loom_scheduler.api.routes import api_router
from loom_scheduler.core.config import get_settings
from loom_scheduler.core.logging import configure_logging
from loom_scheduler.services.errors import LoomError

logger = logging.getLogger(__name__)


async def handle_loom_error(request: Request, exc: LoomError) -> JSONResponse:
    if exc.status_code >= 409:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_application() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        description="API for projecting recurring programs into staffed, routed instances.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LoomError, handle_loom_error)
    app.include_router(api_router, prefix="/api")
    app.add_api_route("/health", health_check, methods=["GET"])
    return app


async def health_check() -> dict[str, str]:
    """Simple health endpoint for infrastructure monitoring."""
    return {"status": "ok"}


app = create_application()
