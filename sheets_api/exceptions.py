"""Error taxonomy for the sheets API.

Every failure the core can produce is a SheetsApiError subclass carrying a
machine-readable ``kind`` and a free-form ``detail``. The HTTP layer turns
these into a uniform ``{"ok": false, ...}`` envelope.
"""

from __future__ import annotations

from typing import Any


class SheetsApiError(Exception):
    """Base exception for all sheets API errors."""

    category = "error"
    status_code = 500

    def __init__(self, kind: str, detail: str = "", *, status_code: int | None = None) -> None:
        super().__init__(f"{kind}: {detail}" if detail else kind)
        self.kind = kind
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Tagged error result returned to API callers."""
        return {
            "ok": False,
            "error": self.category,
            "kind": self.kind,
            "detail": self.detail,
        }


class AuthError(SheetsApiError):
    """Raised when a token cannot be issued (key_invalid, token_exchange_failed)."""

    category = "auth_error"
    status_code = 502


class ConfigError(SheetsApiError):
    """Raised for unknown project/list identifiers or missing credentials."""

    category = "config_error"
    status_code = 404


class SheetError(SheetsApiError):
    """Raised when the Sheets API rejects a call.

    ``detail`` holds the remote response body verbatim.
    """

    category = "sheet_error"
    status_code = 502


class ValidationError(SheetsApiError):
    """Raised for malformed input payloads."""

    category = "validation_error"
    status_code = 400
