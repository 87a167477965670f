"""Lazy access token cache with single-flight minting."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from sheets_api.credentials import ServiceAccountCredential
from sheets_api.token_minter import MintedToken

# Tokens live 60 minutes; stop serving them after 55 so none expires mid-request
TOKEN_MARGIN_SECONDS = 55 * 60


class MinterProtocol(Protocol):
    """Protocol for the minting operation needed by TokenCache."""

    async def mint(self, credential: ServiceAccountCredential) -> MintedToken: ...


@dataclass(frozen=True)
class AccessToken:
    """A cached bearer token.

    Attributes:
        value: Opaque bearer string.
        expires_at: Epoch seconds after which the token is no longer served.
    """

    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class TokenCache:
    """Holds the most recently minted token and decides when to re-mint.

    A cache serves a single credential. There is no background refresh: a
    stale token is replaced on the next call to ``get_token``. When several
    callers find the slot stale at the same time, the first one starts the
    mint and the rest await that same operation, so exactly one token
    exchange happens.
    """

    def __init__(
        self,
        minter: MinterProtocol,
        clock: Callable[[], float] = time.time,
        margin_seconds: int = TOKEN_MARGIN_SECONDS,
    ) -> None:
        self._minter = minter
        self._clock = clock
        self._margin_seconds = margin_seconds
        self._token: AccessToken | None = None
        self._pending: asyncio.Task[str] | None = None

    @property
    def token(self) -> AccessToken | None:
        return self._token

    async def get_token(self, credential: ServiceAccountCredential) -> str:
        """Return a valid bearer token for credential, minting one if needed.

        Raises:
            AuthError: If minting fails. Every waiter sees the same error.
        """
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            logger.debug("Using cached access token")
            return token.value

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._refresh(credential))

        # Shield so one waiter being cancelled does not cancel the shared mint
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        """Drop the cached token so the next call mints a new one."""
        self._token = None

    async def _refresh(self, credential: ServiceAccountCredential) -> str:
        minted_at = self._clock()
        try:
            minted = await self._minter.mint(credential)
            self._token = AccessToken(
                value=minted.access_token,
                expires_at=minted_at + self._margin_seconds,
            )
            return minted.access_token
        finally:
            self._pending = None
