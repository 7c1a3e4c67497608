"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from crmflow.api.routes import history, rules, test, triggers
from crmflow.core.config import get_settings
from crmflow.core.exceptions import ConfigurationError, StorageUnavailableError
from crmflow.core.logging import get_logger, setup_logging
from crmflow.engine.workflow import build_workflow_engine
from crmflow.storage.redis_client import close_redis_pool, get_redis, init_redis_pool, ping_redis

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings = get_settings()

    setup_logging()
    logger.info("Starting application", app_name=settings.app_name, version=settings.app_version)

    await init_redis_pool()
    app.state.engine = build_workflow_engine(get_redis(), settings)
    logger.info("Workflow engine ready")

    yield

    logger.info("Shutting down application")
    await app.state.engine.close()
    await close_redis_pool()
    logger.info("Application stopped")


def _error(status_code: int, message: str, data: object = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"code": status_code, "message": message, "data": data},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Real-estate CRM workflow automation engine",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(triggers.router, prefix="/api/v1")
    app.include_router(rules.router, prefix="/api/v1")
    app.include_router(test.router, prefix="/api/v1")
    app.include_router(history.router, prefix="/api/v1")
    app.mount("/metrics", make_asgi_app())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        return _error(
            exc.status_code,
            detail if isinstance(detail, str) else "HTTP error",
            None if isinstance(detail, str) else detail,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        return _error(422, "Validation error", jsonable_errors(exc))

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        return _error(422, str(exc), {"rule_id": exc.rule_id})

    @app.exception_handler(StorageUnavailableError)
    async def storage_error_handler(request: Request, exc: StorageUnavailableError) -> JSONResponse:
        logger.error("Storage unavailable", path=request.url.path, operation=exc.operation)
        return _error(503, "Rule storage unavailable")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return _error(500, "Internal server error", str(exc) if settings.debug else None)

    @app.get("/health")
    async def health_check() -> dict:
        """Liveness plus rule storage reachability."""
        redis_ok = await ping_redis()
        return {
            "status": "ok" if redis_ok else "degraded",
            "version": settings.app_version,
            "redis": redis_ok,
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without non-serializable context objects."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def run() -> None:
    """Console script entry point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("crmflow.api.app:app", host=settings.api_host, port=settings.api_port)


# Application instance for uvicorn
app = create_app()
