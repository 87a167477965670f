"""Access token minting for service accounts.

The TokenMinter builds a signed JWT assertion for a service account and
exchanges it at the OAuth2 token endpoint (JWT-bearer grant). There is no
refresh token: every mint signs a fresh assertion.
"""

from __future__ import annotations

import json
import ssl
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import certifi
import httpx
from loguru import logger

from sheets_api.credentials import ServiceAccountCredential
from sheets_api.exceptions import AuthError
from sheets_api.signer import b64url_encode, sign

TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Assertion lifetime in seconds (1 hour, the maximum Google accepts)
ASSERTION_LIFETIME = 3600

DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class MintedToken:
    """Result of a token exchange."""

    access_token: str
    expires_in: int


def _encode_segment(data: dict[str, Any]) -> str:
    return b64url_encode(json.dumps(data, separators=(",", ":")).encode("utf-8"))


class TokenMinter:
    """Mints bearer tokens from a service account credential.

    Example:
        >>> minter = TokenMinter()
        >>> token = await minter.mint(credential)
        >>> token.access_token
        'ya29...'
    """

    def __init__(
        self,
        token_uri: str = TOKEN_URI,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the minter.

        Args:
            token_uri: OAuth2 token endpoint, also used as the assertion audience
            http_client: Optional client (injectable for testing). If not
                provided, one is created with a certifi SSL context.
            clock: Returns the current time in epoch seconds
            timeout: Request timeout in seconds for a created client
        """
        self._token_uri = token_uri
        self._clock = clock
        if http_client is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            http_client = httpx.AsyncClient(timeout=timeout, verify=ssl_context)
        self._client = http_client

    @property
    def token_uri(self) -> str:
        return self._token_uri

    def build_assertion(self, credential: ServiceAccountCredential, now: int | None = None) -> str:
        """Build the signed JWT assertion for a credential.

        Args:
            credential: Service account to issue the assertion for
            now: Issue time in epoch seconds (defaults to the clock)

        Returns:
            ``base64url(header).base64url(claims).base64url(signature)``

        Raises:
            AuthError: key_invalid if the credential's key cannot sign
        """
        if now is None:
            now = int(self._clock())

        header = {"alg": "RS256", "typ": "JWT"}
        claims = {
            "iss": credential.email,
            "scope": " ".join(credential.scopes),
            "aud": self._token_uri,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME,
        }

        signing_input = f"{_encode_segment(header)}.{_encode_segment(claims)}"
        signature = sign(signing_input.encode("ascii"), credential.private_key)
        return f"{signing_input}.{b64url_encode(signature)}"

    async def mint(self, credential: ServiceAccountCredential) -> MintedToken:
        """Sign a fresh assertion and exchange it for an access token.

        Raises:
            AuthError: key_invalid or token_exchange_failed
        """
        assertion = self.build_assertion(credential)

        try:
            response = await self._client.post(
                self._token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                headers={"Accept": "application/json"},
            )
        except httpx.RequestError as e:
            logger.warning(
                "Token endpoint unreachable",
                extra={"service_account": credential.email, "error": str(e)},
            )
            raise AuthError("token_exchange_failed", f"Network error: {e}") from e

        if not response.is_success:
            logger.warning(
                "Token exchange rejected",
                extra={"service_account": credential.email, "status": response.status_code},
            )
            raise AuthError("token_exchange_failed", response.text)

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", ASSERTION_LIFETIME))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AuthError("token_exchange_failed", response.text) from e

        logger.info(
            "Access token minted",
            extra={"service_account": credential.email, "expires_in": expires_in},
        )
        return MintedToken(access_token=access_token, expires_in=expires_in)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
