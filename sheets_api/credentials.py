"""Service account credential value."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sheets_api.exceptions import ConfigError

SPREADSHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"


@dataclass(frozen=True)
class ServiceAccountCredential:
    """Identity used to mint access tokens.

    Attributes:
        email: Service account email, used as the assertion issuer.
        private_key: PEM-encoded PKCS8 RSA private key.
        scopes: OAuth scopes requested for every token.
    """

    email: str
    private_key: str
    scopes: tuple[str, ...] = (SPREADSHEETS_SCOPE,)

    def __repr__(self) -> str:
        # Keep the key out of logs and tracebacks
        return f"ServiceAccountCredential(email={self.email!r}, scopes={self.scopes!r})"

    @classmethod
    def from_env_values(
        cls, email: str, private_key: str, scopes: list[str] | tuple[str, ...] | None = None
    ) -> ServiceAccountCredential:
        """Build a credential from environment-style values.

        Keys stored in env vars usually carry literal ``\\n`` sequences
        instead of newlines; those are restored here.
        """
        if not email or not private_key:
            raise ConfigError(
                "missing_credential",
                "Service account email and private key must both be set",
                status_code=500,
            )
        return cls(
            email=email,
            private_key=private_key.replace("\\n", "\n"),
            scopes=tuple(scopes) if scopes else (SPREADSHEETS_SCOPE,),
        )

    @classmethod
    def from_service_account_info(
        cls, info: dict[str, Any], scopes: list[str] | tuple[str, ...] | None = None
    ) -> ServiceAccountCredential:
        """Build a credential from a parsed Google service account JSON key."""
        try:
            email = info["client_email"]
            private_key = info["private_key"]
        except KeyError as e:
            raise ConfigError(
                "missing_credential",
                f"Service account key is missing field {e.args[0]!r}",
                status_code=500,
            ) from e
        return cls.from_env_values(email, private_key, scopes)

    @classmethod
    def from_service_account_file(
        cls, path: str | Path, scopes: list[str] | tuple[str, ...] | None = None
    ) -> ServiceAccountCredential:
        """Build a credential from a Google service account JSON key file."""
        path = Path(path)
        try:
            info = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(
                "missing_credential",
                f"Could not read service account file {path}: {e}",
                status_code=500,
            ) from e
        return cls.from_service_account_info(info, scopes)
