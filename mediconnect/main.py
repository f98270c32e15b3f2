from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from mediconnect.core.config import settings
from mediconnect.core.exceptions import BaseCustomException, create_error_response
from mediconnect.core.logging import configure_logging
from mediconnect.api.v1.api import api_router
from mediconnect.infrastructure.database import init_db, close_db
from mediconnect.middleware.request_context import RequestContextMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.is_sqlite:
        # Postgres schemas come from alembic
        await init_db()
    logger.info(f"Starting {settings.PROJECT_NAME}")
    yield
    await close_db()
    logger.info("Shutting down")


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(RequestContextMiddleware)


@app.exception_handler(BaseCustomException)
async def custom_exception_handler(request: Request, exc: BaseCustomException):
    request_id = getattr(request.state, "request_id", None)
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error_code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc, request_id=request_id)
    )


app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health")
def health_check():
    return {"status": "ok"}
