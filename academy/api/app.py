"""FastAPI application."""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from academy import __version__
from academy.api.dependencies import validation_failure
from academy.api.routes import functions, notifications, webhooks
from academy.core.exceptions import AcademyException
from academy.core.logging import bind_request_context, clear_request_context, get_logger
from academy.storage.database.base import close_db

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
CORS_HEADERS = functions.CORS_HEADERS


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    logger.info("application_starting", version=__version__)
    yield
    await close_db()
    logger.info("application_stopped")


app = FastAPI(
    title="Cliniks Academy Dispatch API",
    description="Webhook dispatch and notification fan-out for Cliniks Academy",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)


def error_response(message: str, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    """``{"error": message}`` with the fixed CORS headers."""
    return JSONResponse({"error": message}, status_code=status_code, headers={**CORS_HEADERS, **(headers or {})})


@app.middleware("http")
async def request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Tag log entries with the request id and add the fixed CORS headers."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    bind_request_context(request_id=request_id, path=request.url.path, method=request.method)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    for name, value in CORS_HEADERS.items():
        response.headers.setdefault(name, value)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(AcademyException)
async def academy_exception_handler(request: Request, exc: AcademyException) -> JSONResponse:
    """Render service errors as ``{"error": message}``."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        status_code=exc.status_code,
        error=exc.message,
        error_type=type(exc).__name__,
        details=exc.details or None,
    )
    return error_response(exc.message, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (404, 405) as ``{"error": message}``."""
    logger.warning("request_rejected", path=request.url.path, status_code=exc.status_code, error=exc.detail)
    return error_response(str(exc.detail), exc.status_code, exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    failure = validation_failure(exc.errors())
    logger.warning("request_invalid", path=request.url.path, error=failure.message, details=failure.details)
    return error_response(failure.message, 422)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render anything else as a 500 ``{"error": message}``."""
    logger.error(
        "request_crashed",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return error_response(str(exc) or type(exc).__name__, 500)


app.include_router(functions.router)
app.include_router(webhooks.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
