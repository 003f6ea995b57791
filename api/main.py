"""
FastAPI main application for the Book Library API.
"""

import asyncio
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from motor.motor_asyncio import AsyncIOMotorClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import config
from api.database import BookService, ReviewService, health_check
from api.errors import ErrorKind, ServiceError
from api.models import HealthResponse
from api.routes import books_router, respond, reviews_router
from utilities.logger import bind_request_context, clear_request_context, get_logger, setup_logging

logger = get_logger(__name__)


def exit_on_unhandled_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Event loop exception handler: log the failure and stop the process."""
    error = context.get("exception")
    logger.critical(
        "Unhandled asynchronous exception",
        message=context.get("message"),
        error=str(error) if error else None,
    )
    os._exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting Book Library API")
    asyncio.get_running_loop().set_exception_handler(exit_on_unhandled_exception)

    client = AsyncIOMotorClient(config.mongodb_url, tz_aware=True)
    try:
        database = client[config.mongodb_database]
        await database.command("ping")
        logger.info("Database connection established", database=config.mongodb_database)

        app.state.database = database
        app.state.book_service = BookService(database)
        app.state.review_service = ReviewService(database)
        await app.state.book_service.ensure_indexes()
        await app.state.review_service.ensure_indexes()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        client.close()
        raise

    yield

    logger.info("Shutting down Book Library API")
    client.close()


app = FastAPI(
    title=config.api_title,
    description=config.api_description,
    version=config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_allow_credentials,
    allow_methods=config.cors_allow_methods,
    allow_headers=config.cors_allow_headers,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its outcome and duration."""
    bind_request_context(request.method, request.url.path)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        logger.info(
            "Request handled",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
    finally:
        clear_request_context()


# Exception handlers
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Map service errors to a status code and envelope."""
    if exc.kind == ErrorKind.VALIDATION_FAILED:
        return respond(exc.status_code, success=False, errors=exc.errors)

    if exc.kind == ErrorKind.INTERNAL_ERROR:
        logger.error("Service failure", error=exc.message, path=request.url.path)
        return respond(
            exc.status_code,
            success=False,
            message="Server error",
            error=exc.message if config.debug else None,
        )

    return respond(exc.status_code, success=False, message=exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Reject malformed bodies and query values before they reach a service."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"][1:]) or error["loc"][0]
        errors.append(f"{field}: {error['msg']}")
    return respond(status.HTTP_400_BAD_REQUEST, success=False, message="Invalid request", errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions; unknown routes and methods read as not found."""
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return respond(status.HTTP_404_NOT_FOUND, success=False, message="Route not found")
    return respond(exc.status_code, success=False, message=str(exc.detail))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return respond(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        success=False,
        message="Something went wrong!",
        error=str(exc) if config.debug else None,
    )


@app.get("/", tags=["Info"])
async def root():
    """API name, version and endpoint listing."""
    return {
        "message": config.api_title,
        "version": config.api_version,
        "endpoints": {
            "books": {
                "GET /books": "Get all books",
                "GET /books/{id}": "Get book by ID",
                "POST /books": "Create new book",
                "PUT /books/{id}": "Update book",
                "DELETE /books/{id}": "Delete book",
                "GET /books/stats/summary": "Get book statistics",
            },
            "reviews": {
                "GET /reviews": "Get all reviews",
                "GET /reviews/{id}": "Get review by ID",
                "POST /reviews": "Create new review",
                "PUT /reviews/{id}": "Update review",
                "DELETE /reviews/{id}": "Delete review",
                "GET /reviews/book/{bookId}/average": "Get average rating for a book",
            },
        },
    }


@app.get("/health", tags=["Health"])
async def health():
    """Health check endpoint."""
    database = getattr(app.state, "database", None)
    db_status = "unavailable"
    if database is not None:
        health_info = await health_check(database)
        db_status = health_info.get("status", "unknown")

    return respond(
        success=db_status == "healthy",
        data=HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=config.api_version,
            database_status=db_status,
        ),
    )


app.include_router(books_router)
app.include_router(reviews_router)

if Path(config.static_dir).is_dir():
    app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
