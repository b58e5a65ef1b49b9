import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from autoscene.api.v1.cloud import reset_cloud_backends
from autoscene.api.v1.cloud import router as cloud_router
from autoscene.api.v1.scenes import router as scenes_router
from autoscene.core.config import get_settings
from autoscene.core.dependencies import init_db
from autoscene.services.ai.common import router as ai_router

settings = get_settings()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="AutoScene API",
    version="0.3.0",
    docs_url="/docs" if settings.docs_enabled else None,
    openapi_url="/openapi.json" if settings.openapi_enabled else None,
)


@app.on_event("startup")
async def _startup_jobs():
    errors = settings.validate_required_config()
    if errors:
        if settings.strict_config:
            raise RuntimeError(
                "Configuration validation failed in production environment: " + "; ".join(errors)
            )
        for error in errors:
            logger.warning("Configuration: %s – affected backends fall back to mock", error)

    init_db()
    ai_router.init_backends(settings)


@app.on_event("shutdown")
async def _shutdown_jobs():
    reset_cloud_backends()
    await ai_router.aclose_backends()


if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=["Content-Type", "Accept"],
    )

app.include_router(scenes_router, prefix="/api/v1", tags=["scenes"])
app.include_router(cloud_router, tags=["cloud"])


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Hide internal details for 5xx unless explicitly enabled.
    if exc.status_code >= 500 and not settings.expose_error_details:
        return JSONResponse(status_code=exc.status_code, content={"detail": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception")
    if settings.expose_error_details:
        return JSONResponse(status_code=500, content={"detail": str(exc)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
