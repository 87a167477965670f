"""REST API endpoints for the sheets API.

Business logic is delegated to RowMapper; this module only resolves
identifiers, normalizes payloads and logs each flow's outcome.

Endpoints:
- GET  /health                              - Health check
- GET  /health/ready                        - Readiness check
- POST /sheets/{spreadsheet_id}/{range}     - Append records to a direct range
- GET  /sheets/{spreadsheet_id}/{range}     - Read records from a direct range
- POST /{project_id}/{list_name}            - Append records to a configured list
- GET  /{project_id}/{list_name}            - Read records from a configured list
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger
from pydantic import BaseModel

from sheets_api import __version__
from sheets_api.config import Settings, get_settings
from sheets_api.exceptions import ConfigError, SheetsApiError
from sheets_api.row_mapper import RowMapper

SERVICE_NAME = "sheets-api"

router = APIRouter()


class AppendPayload(BaseModel):
    """Request body for appends: one record or a list of records."""

    data: dict[str, Any] | list[dict[str, Any]]

    def records(self) -> list[dict[str, Any]]:
        return self.data if isinstance(self.data, list) else [self.data]


def get_row_mapper(request: Request) -> RowMapper:
    """FastAPI dependency to get the shared RowMapper.

    The mapper (and the SheetClient with its token cache) is created during
    application lifespan and stored in app.state.
    """
    mapper: RowMapper | None = getattr(request.app.state, "row_mapper", None)
    if mapper is None:
        detail = getattr(request.app.state, "credential_error", "") or "No credential configured"
        raise ConfigError("missing_credential", detail, status_code=500)
    return mapper


@contextmanager
def _flow(operation: str, **context: Any) -> Iterator[None]:
    """Log the outcome and duration of one request flow."""
    start = time.perf_counter()
    try:
        yield
    except SheetsApiError as e:
        logger.warning(
            f"{operation} failed",
            extra={
                **context,
                "kind": e.kind,
                "detail": e.detail,
                "duration_ms": round((time.perf_counter() - start) * 1000),
            },
        )
        raise
    logger.info(
        f"{operation} succeeded",
        extra={**context, "duration_ms": round((time.perf_counter() - start) * 1000)},
    )


# =============================================================================
# Health Endpoints
# =============================================================================


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Basic health check endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": __version__,
        "status": "healthy",
        "server": {"url": str(request.base_url).rstrip("/")},
        "endpoints": [
            "GET  /health",
            "POST /{project_id}/{list_name}",
            "GET  /{project_id}/{list_name}?format=objects|raw",
            "POST /sheets/{spreadsheet_id}/{range}",
            "GET  /sheets/{spreadsheet_id}/{range}?format=objects|raw",
        ],
    }


@router.get("/health/ready")
async def readiness_check(
    request: Request, settings: Settings = Depends(get_settings)
) -> dict:
    """Readiness check for Kubernetes/Cloud Run."""
    return {
        "status": "ready",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "credential_configured": getattr(request.app.state, "row_mapper", None) is not None,
    }


# =============================================================================
# Direct Range Endpoints
# =============================================================================


@router.post("/sheets/{spreadsheet_id}/{range_spec}")
async def append_to_range(
    spreadsheet_id: str,
    range_spec: str,
    payload: AppendPayload,
    mapper: RowMapper = Depends(get_row_mapper),
) -> dict:
    """Append records to an explicit spreadsheet range."""
    with _flow("Append", spreadsheet_id=spreadsheet_id, range=range_spec):
        outcome = await mapper.append_records(spreadsheet_id, range_spec, payload.records())
    return outcome.to_dict()


@router.get("/sheets/{spreadsheet_id}/{range_spec}")
async def read_from_range(
    spreadsheet_id: str,
    range_spec: str,
    format: str = Query("objects", description="objects or raw"),
    mapper: RowMapper = Depends(get_row_mapper),
) -> dict:
    """Read an explicit spreadsheet range."""
    with _flow("Read", spreadsheet_id=spreadsheet_id, range=range_spec, format=format):
        outcome = await mapper.read_records(spreadsheet_id, range_spec, format)
    return outcome.to_dict()


# =============================================================================
# Configured List Endpoints
# =============================================================================


@router.post("/{project_id}/{list_name}")
async def append_to_list(
    project_id: str,
    list_name: str,
    payload: AppendPayload,
    settings: Settings = Depends(get_settings),
    mapper: RowMapper = Depends(get_row_mapper),
) -> dict:
    """Append records to a list configured in PROJECTS_CONFIG."""
    with _flow("Append", project=project_id, list=list_name):
        spreadsheet_id, range_spec = settings.resolve_sheet_config(project_id, list_name)
        outcome = await mapper.append_records(spreadsheet_id, range_spec, payload.records())
    return outcome.to_dict()


@router.get("/{project_id}/{list_name}")
async def read_from_list(
    project_id: str,
    list_name: str,
    format: str = Query("objects", description="objects or raw"),
    settings: Settings = Depends(get_settings),
    mapper: RowMapper = Depends(get_row_mapper),
) -> dict:
    """Read a list configured in PROJECTS_CONFIG."""
    with _flow("Read", project=project_id, list=list_name, format=format):
        spreadsheet_id, range_spec = settings.resolve_sheet_config(project_id, list_name)
        outcome = await mapper.read_records(spreadsheet_id, range_spec, format)
    return outcome.to_dict()
