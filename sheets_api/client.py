"""Authenticated client for the Google Sheets v4 REST API.

SheetClient owns the service account credential and the TokenCache for it.
Every call obtains a token first, then talks to the Sheets API with it:
- get_metadata: spreadsheet title and tabs
- get_values: a range of cell values
- append_values: insert rows after the last row of a range
"""

from __future__ import annotations

import ssl
import time
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import certifi
import httpx
from loguru import logger

from sheets_api.credentials import ServiceAccountCredential
from sheets_api.exceptions import SheetError
from sheets_api.token_cache import TokenCache
from sheets_api.token_minter import TokenMinter

# API constants
API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True)
class SheetInfo:
    """Information about a single tab within a spreadsheet."""

    sheet_id: int
    title: str
    row_count: int
    column_count: int


@dataclass(frozen=True)
class SpreadsheetMetadata:
    """Metadata about a spreadsheet, including its tabs in display order."""

    spreadsheet_id: str
    title: str
    sheets: tuple[SheetInfo, ...]

    def find_sheet(self, title: str) -> SheetInfo | None:
        for sheet in self.sheets:
            if sheet.title == title:
                return sheet
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "tabs": [
                {
                    "title": s.title,
                    "id": s.sheet_id,
                    "rowCount": s.row_count,
                    "columnCount": s.column_count,
                }
                for s in self.sheets
            ],
        }


@dataclass(frozen=True)
class AppendResult:
    """Result of a values append call."""

    updated_rows: int


class SheetClient:
    """Client for reading and appending spreadsheet values as a service account.

    The token cache is created with the client and lives as long as it does,
    so a long-lived client reuses one token across many calls.

    Example:
        >>> credential = ServiceAccountCredential(email="bot@proj.iam.gserviceaccount.com",
        ...                                       private_key=pem)
        >>> async with SheetClient(credential) as client:
        ...     values = await client.get_values("1BxiMVs0XRA5...", "Leads!A:Z")
    """

    def __init__(
        self,
        credential: ServiceAccountCredential,
        *,
        minter: TokenMinter | None = None,
        http_client: httpx.AsyncClient | None = None,
        api_base: str = API_BASE,
        token_uri: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the client.

        Args:
            credential: Service account to authenticate as
            minter: Optional TokenMinter (injectable for testing). If not
                provided, one is created sharing this client's HTTP client.
            http_client: Optional HTTP client (injectable for testing)
            api_base: Base URL of the spreadsheets resource
            token_uri: Token endpoint for a created minter
            timeout: Request timeout in seconds for a created HTTP client
            clock: Returns the current time in epoch seconds
        """
        self._credential = credential
        self._api_base = api_base.rstrip("/")
        if http_client is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            http_client = httpx.AsyncClient(
                timeout=timeout,
                verify=ssl_context,
                headers={"Accept": "application/json"},
            )
        self._client = http_client
        if minter is None:
            minter_kwargs: dict[str, Any] = {"http_client": http_client, "clock": clock}
            if token_uri:
                minter_kwargs["token_uri"] = token_uri
            minter = TokenMinter(**minter_kwargs)
        self._token_cache = TokenCache(minter, clock=clock)

    @property
    def credential(self) -> ServiceAccountCredential:
        return self._credential

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    async def get_metadata(self, spreadsheet_id: str) -> SpreadsheetMetadata:
        """Fetch spreadsheet title and tabs.

        Raises:
            AuthError: If no token can be obtained
            SheetError: not_found on any non-2xx response
        """
        url = f"{self._api_base}/{_quote(spreadsheet_id)}"
        response = await self._request(
            "GET",
            url,
            error_kind="not_found",
            params={"fields": "spreadsheetId,properties.title,sheets.properties"},
        )

        sheets: list[SheetInfo] = []
        for sheet in response.get("sheets", []):
            props = sheet.get("properties", {})
            grid_props = props.get("gridProperties", {})
            sheets.append(
                SheetInfo(
                    sheet_id=props.get("sheetId", 0),
                    title=props.get("title", ""),
                    row_count=grid_props.get("rowCount", 0),
                    column_count=grid_props.get("columnCount", 0),
                )
            )

        return SpreadsheetMetadata(
            spreadsheet_id=response.get("spreadsheetId", spreadsheet_id),
            title=response.get("properties", {}).get("title", ""),
            sheets=tuple(sheets),
        )

    async def get_values(self, spreadsheet_id: str, range_spec: str) -> list[list[str]]:
        """Fetch the values of a range as rows of strings.

        Trailing empty rows and cells are omitted by the API, so rows may be
        ragged. An empty range yields an empty list.

        Raises:
            AuthError: If no token can be obtained
            SheetError: read_failed on any non-2xx response
        """
        url = f"{self._api_base}/{_quote(spreadsheet_id)}/values/{_quote(range_spec)}"
        response = await self._request("GET", url, error_kind="read_failed")
        values: list[list[str]] = response.get("values", [])
        return values

    async def append_values(
        self, spreadsheet_id: str, range_spec: str, rows: list[list[Any]]
    ) -> AppendResult:
        """Append rows after the last row of a range.

        Uses INSERT_ROWS so existing cells are never overwritten, and RAW so
        values are stored as given rather than parsed as formulas.

        Raises:
            AuthError: If no token can be obtained
            SheetError: append_failed on any non-2xx response
        """
        url = f"{self._api_base}/{_quote(spreadsheet_id)}/values/{_quote(range_spec)}:append"
        response = await self._request(
            "POST",
            url,
            error_kind="append_failed",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": rows},
        )
        updates = response.get("updates") or {}
        return AppendResult(updated_rows=updates.get("updatedRows", 0))

    async def _request(
        self,
        method: str,
        url: str,
        *,
        error_kind: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request and decode the JSON body."""
        token = await self._token_cache.get_token(self._credential)
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.RequestError as e:
            logger.warning("Sheets API unreachable", extra={"url": url, "error": str(e)})
            raise SheetError(error_kind, f"Network error: {e}") from e

        if response.status_code == 401:
            # Rejected token: drop it so the next call mints a fresh one
            self._token_cache.invalidate()

        if not response.is_success:
            logger.warning(
                "Sheets API error",
                extra={"url": url, "status": response.status_code, "kind": error_kind},
            )
            raise SheetError(error_kind, response.text)

        if not response.content:
            return {}
        try:
            result = response.json()
        except ValueError as e:
            raise SheetError(error_kind, response.text) from e
        if not isinstance(result, dict):
            raise SheetError(error_kind, response.text)
        return result

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> SheetClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _quote(segment: str) -> str:
    return urllib.parse.quote(segment, safe="")
