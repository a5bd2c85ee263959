"""
FastAPI application factory — entry point for the codedrop server.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codedrop.api.v1.router import v1_router
from codedrop.config import Settings, settings as default_settings
from codedrop.dependencies import build_registry, build_transfer_service
from codedrop.exceptions import TransferError
from codedrop.middleware.error_handler import ErrorHandlerMiddleware, RequestIdMiddleware, transfer_error_handler
from codedrop.utils.log_config import setup_logging
from codedrop.utils.storage import LocalStorage
from codedrop.workers.cleanup_worker import ExpiryReaper


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings

    storage = LocalStorage(settings.blob_dir)
    registry, engine = await build_registry(settings, storage, getattr(app.state, "code_generator", None))
    app.state.storage = storage
    app.state.registry = registry
    app.state.transfer_service = build_transfer_service(settings, registry, storage)

    reaper = ExpiryReaper(
        registry,
        interval=settings.REAPER_INTERVAL_SECONDS,
        grace=settings.REAPER_GRACE_SECONDS,
        orphan_max_age=settings.FILE_TTL_SECONDS + settings.REAPER_GRACE_SECONDS,
    )
    app.state.reaper = reaper
    if settings.REAPER_ENABLED:
        reaper.start()

    yield

    # Shutdown: stop the reaper, then release the stores
    await reaper.stop()
    await registry.close()
    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="codedrop",
        description="Share files with a short code: upload, get a link and QR code, download before it expires.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Middleware (order matters — outermost first) ──────
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    app.add_exception_handler(TransferError, transfer_error_handler)

    # ── API Routes ───────────────────────────────────────
    app.include_router(v1_router)

    return app


def run() -> None:
    import uvicorn

    setup_logging(default_settings.LOG_LEVEL)
    uvicorn.run(
        "codedrop.main:app",
        host=default_settings.BACKEND_HOST,
        port=default_settings.BACKEND_PORT,
        log_config=None,
    )


app = create_app()


if __name__ == "__main__":
    run()
