"""FastAPI server for the Concierge approval queue"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from concierge.api.routes.approvals import router as approvals_router
from concierge.api.routes.backfill import router as backfill_router
from concierge.api.routes.domains import router as domains_router
from concierge.api.routes.health import router as health_router
from concierge.api.routes.runs import router as runs_router
from concierge.config import APP_VERSION
from concierge.errors import AlreadyDisposed, ExternalCallFailure, NotFound, ValidationError
from concierge.infrastructure.database import init_database
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event
from concierge.utils.redaction import redact

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Idempotent - safe on every startup
    try:
        logger.info("Initializing database schema...")
        init_database()
        logger.info("Database initialization complete")
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        logger.critical("Database may be corrupted or locked by another process")
        raise RuntimeError(f"Database initialization failed: {e}") from e

    log_event("api.startup", service="concierge", version=APP_VERSION)
    yield


app = FastAPI(title="Concierge API", version=APP_VERSION, lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Sanitized 422 for malformed requests.

    Side Effects:
        - Logs the validation errors (URL redacted)
        - Increments api.validation_errors
    """
    logger.warning("Validation error on %s: %s", redact(str(request.url)), exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            # Field names only, not the validation rules
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


@app.exception_handler(ValidationError)
async def domain_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    counter("api.errors.validation")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    counter("api.errors.not_found")
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(AlreadyDisposed)
async def already_disposed_handler(request: Request, exc: AlreadyDisposed) -> JSONResponse:
    counter("api.errors.already_disposed")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "state": exc.state},
    )


@app.exception_handler(ExternalCallFailure)
async def external_failure_handler(request: Request, exc: ExternalCallFailure) -> JSONResponse:
    counter("api.errors.external")
    logger.error("External call failed during %s: %s", redact(str(request.url)), exc)
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"{exc.operation} failed"},
    )


app.include_router(health_router)
app.include_router(approvals_router)
app.include_router(domains_router)
app.include_router(runs_router)
app.include_router(backfill_router)


def main() -> None:
    """Run the API with uvicorn (console script entry point)."""
    import uvicorn

    from concierge.config import API_HOST, API_PORT

    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
