import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import Settings, settings as default_settings
from app.core.database import (
    check_database_connection,
    create_db_engine,
    create_session_factory,
    init_db,
)
from app.core.handlers import register_exception_handlers
from app.core.logging import setup_logging
from app.api.v1.router import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = app.state.engine
    if check_database_connection(engine):
        init_db(engine, drop_existing=app.state.settings.DB_DROP_ON_STARTUP)
    yield
    engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its database handle from ``settings``.
    """
    settings = settings or default_settings
    request_logger = setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan
    )

    engine = create_db_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    # Explicit allow-list only; cookies are allowed for those origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        request_logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms:.1f} ms)"
        )
        return response

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health_check():
        """
        Health check endpoint
        """
        return {
            "status": "healthy",
            "service": settings.PROJECT_NAME,
            "version": settings.APP_VERSION
        }

    # Pre-built frontend; mounted last so API routes take precedence
    if os.path.isdir(settings.STATIC_DIR):
        app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
    else:
        logger.info(f"Static directory '{settings.STATIC_DIR}' not found, not serving frontend")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=default_settings.HOST, port=default_settings.PORT)
