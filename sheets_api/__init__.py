"""sheets-api - Record-oriented read/append API over Google Sheets.

Authenticates as a service account (signed JWT assertion exchanged for a
short-lived bearer token) and maps header-keyed rows to records and back.
"""

__version__ = "2.0.0"

from sheets_api.client import AppendResult, SheetClient, SheetInfo, SpreadsheetMetadata
from sheets_api.credentials import ServiceAccountCredential
from sheets_api.exceptions import (
    AuthError,
    ConfigError,
    SheetError,
    SheetsApiError,
    ValidationError,
)
from sheets_api.row_mapper import AppendOutcome, RangeSpec, ReadOutcome, RowMapper
from sheets_api.token_cache import AccessToken, TokenCache
from sheets_api.token_minter import MintedToken, TokenMinter

__all__ = [
    "AccessToken",
    "AppendOutcome",
    "AppendResult",
    "AuthError",
    "ConfigError",
    "MintedToken",
    "RangeSpec",
    "ReadOutcome",
    "RowMapper",
    "ServiceAccountCredential",
    "SheetClient",
    "SheetError",
    "SheetInfo",
    "SheetsApiError",
    "SpreadsheetMetadata",
    "TokenCache",
    "TokenMinter",
    "ValidationError",
    "__version__",
]
