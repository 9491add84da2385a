"""Main FastAPI application."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rrweb_uploader.api import files, replay
from rrweb_uploader.config import Settings, settings
from rrweb_uploader.constants import REPLAY_SECRET_HEADER
from rrweb_uploader.services.registry import SessionRegistry
from rrweb_uploader.services.storage import ArtifactStore, DriveStorageService
from rrweb_uploader.utils.logger import logger
from rrweb_uploader.workers.sweeper import start_sweeper, stop_sweeper


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the idle session sweeper for the lifetime of the app."""
    config: Settings = app.state.settings
    sweeper = start_sweeper(app.state.registry, config.sweep_interval_seconds)
    if not app.state.store.is_configured:
        logger.warning("Artifact storage is not configured; /replay/finish will fail")
    if not config.replay_secret:
        logger.warning("REPLAY_SECRET is not set; header-authenticated calls will be rejected")
    try:
        yield
    finally:
        await stop_sweeper(sweeper)
        live = len(app.state.registry)
        if live:
            logger.warning(f"Shutting down with {live} unfinished sessions in memory")


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies as 400 instead of FastAPI's default 422."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "code": "bad_request",
                "message": "missing or malformed fields",
                "errors": [
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
                    for error in exc.errors()
                ],
            }
        },
    )


def create_app(
    config: Optional[Settings] = None,
    store: Optional[ArtifactStore] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings (defaults to the environment-loaded settings)
        store: Artifact store (defaults to Google Drive)
        registry: Session registry (defaults to a fresh one)

    Returns:
        The FastAPI application
    """
    config = config or settings

    app = FastAPI(
        title="rrweb uploader",
        description="Buffers rrweb session replay events and stores finished recordings",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.registry = registry or SessionRegistry(
        idle_timeout_ms=config.idle_timeout_ms,
        strict=config.strict_sessions,
    )
    app.state.store = store or DriveStorageService.from_settings(config)

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", REPLAY_SECRET_HEADER, "Authorization", "X-Requested-With"],
        expose_headers=["Content-Type"],
    )

    # Include routers
    app.include_router(replay.router)
    app.include_router(files.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "liveSessions": len(app.state.registry)}

    return app


app = create_app()


def main() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    logger.info(f"rrweb-uploader listening on :{settings.api_port}")
    if settings.cors_origins:
        logger.info(f"Allowed origins: {', '.join(settings.cors_origins)}")
    else:
        logger.warning("No ALLOWED_ORIGIN configured")
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
