"""Sheets API server.

Record-oriented read/append API over Google Sheets, authenticating as a
service account. One SheetClient (and its token cache) is created at startup
and shared by every request.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from sheets_api import __version__, api
from sheets_api.client import SheetClient
from sheets_api.config import Settings, get_settings
from sheets_api.exceptions import SheetsApiError, ValidationError
from sheets_api.logging import configure_logging
from sheets_api.row_mapper import RowMapper


async def sheets_api_error_handler(request: Request, exc: SheetsApiError) -> JSONResponse:
    """Convert typed errors to the uniform error envelope."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as invalid_payload."""
    error = ValidationError("invalid_payload", _describe_validation_errors(exc))
    logger.warning("Invalid request", extra={"path": request.url.path, "detail": error.detail})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": "internal_error",
            "kind": "internal_error",
            "detail": "Internal server error",
        },
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings

    logger.info(f"Starting sheets API on port {settings.port}")

    client: SheetClient | None = None
    try:
        credential = settings.get_credential()
    except SheetsApiError as e:
        # Requests will answer with missing_credential until configured
        logger.warning("Service account not configured", extra={"detail": e.detail})
        app.state.credential_error = e.detail
    else:
        client = SheetClient(
            credential,
            api_base=settings.sheets_api_base,
            token_uri=settings.token_uri,
            timeout=settings.request_timeout,
        )
        app.state.row_mapper = RowMapper(client)
        logger.info("Service account configured", extra={"service_account": credential.email})

    yield

    if client is not None:
        await client.close()
    logger.info("Shutting down sheets API")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment (for tests)
    """
    if settings is None:
        settings = get_settings()

    configure_logging(
        is_production=settings.is_production,
        log_level=settings.log_level,
    )

    app = FastAPI(
        title="Sheets API",
        description="Record-oriented read/append API over Google Sheets",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )
    app.state.settings = settings
    app.state.row_mapper = None
    app.state.credential_error = ""
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_exception_handler(SheetsApiError, sheets_api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        request_validation_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.get_allowed_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["content-type"],
    )

    app.include_router(api.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sheets_api.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
    )
