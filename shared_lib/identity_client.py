"""
shared_lib.identity_client — Async identity provider client.

Design notes:
- Async-only: all public methods are coroutines. Caller must call close().
- Uses httpx.AsyncClient for async HTTP.
- Only a definitive "does not exist" answer returns None. Transport failures
  and unexpected statuses raise, so an outage or rate limit is never
  mistaken for an account deletion.
- Endpoints follow Reddit's public JSON API:
    by ID:   GET /api/user_data_by_account_ids.json?ids=t2_xxx
    by name: GET /user/{name}/about.json

Exports:
    IdentityClient           -- async identity provider client
    IdentityRecord           -- typed Pydantic model for an existing account
    IdentityProviderError    -- base class for provider failures
    IdentityConnectionError  -- provider unreachable or timed out
    IdentityQueryError       -- provider answered with an unexpected status/body
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel

log = logging.getLogger("shared_lib.identity_client")

DEFAULT_BASE_URL = "https://www.reddit.com"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class IdentityProviderError(Exception):
    """The identity provider could not give a definitive answer."""


class IdentityConnectionError(IdentityProviderError):
    """
    Provider is unreachable or the request timed out.
    """


class IdentityQueryError(IdentityProviderError):
    """
    Provider responded with a status other than success/not-found, or with
    a body that could not be parsed.
    """


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class IdentityRecord(BaseModel):
    """An account the provider confirmed still exists."""

    id: Optional[str] = None
    name: Optional[str] = None
    is_suspended: bool = False


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class IdentityClient:
    """
    Async client answering "does this account still exist?".

    Usage::

        client = IdentityClient(user_agent="my-app/1.0")
        try:
            record = await client.exists_by_id("t2_abc123")
        finally:
            await client.close()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = "user-delete-detector",
        timeout: float = 10.0,
    ) -> None:
        """
        Create the async identity client.

        Args:
            base_url:   Provider base URL. Trailing slashes are stripped.
            user_agent: User-Agent header; Reddit throttles generic agents.
            timeout:    Per-phase timeout in seconds, applied separately to
                        read, write and pool waits (not a total per request).
                        Connect timeout is fixed at 5 seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            timeout=httpx.Timeout(timeout, connect=5.0),
        )
        log.debug("IdentityClient initialised — base_url=%s", self._base_url)

    async def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        """
        GET a JSON document from the provider.

        Returns:
            Parsed JSON body, or None when the provider answered 404.

        Raises:
            IdentityConnectionError: Provider unreachable or timed out.
            IdentityQueryError:      Non-2xx status other than 404, or bad JSON.
        """
        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise IdentityConnectionError(f"Identity provider timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise IdentityConnectionError(f"Cannot connect to identity provider: {exc}") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise IdentityQueryError(
                f"Identity provider returned HTTP {resp.status_code} for {path}"
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise IdentityQueryError(f"Identity provider returned invalid JSON for {path}") from exc
        if not isinstance(body, dict):
            raise IdentityQueryError(f"Unexpected response shape for {path}")
        return body

    async def exists_by_id(self, account_id: str) -> Optional[IdentityRecord]:
        """
        Look up an account by its ``t2_`` ID.

        Returns:
            IdentityRecord if the account exists, None if it was deleted.

        Raises:
            IdentityProviderError: No definitive answer could be obtained.
        """
        body = await self._get(
            "/api/user_data_by_account_ids.json", params={"ids": account_id}
        )
        if not body:
            return None
        raw = body.get(account_id)
        if not isinstance(raw, dict):
            return None
        return IdentityRecord(
            id=account_id,
            name=raw.get("name"),
            is_suspended=bool(raw.get("is_suspended", False)),
        )

    async def exists_by_name(self, username: str) -> Optional[IdentityRecord]:
        """
        Look up an account by username.

        Returns:
            IdentityRecord if the account exists, None if it was deleted.

        Raises:
            IdentityProviderError: No definitive answer could be obtained.
        """
        body = await self._get(f"/user/{quote(username, safe='')}/about.json")
        if body is None:
            return None
        data = body.get("data")
        if not isinstance(data, dict):
            raise IdentityQueryError(f"Missing account data for user {username!r}")

        raw_id = data.get("id")
        return IdentityRecord(
            id=f"t2_{raw_id}" if raw_id else None,
            name=data.get("name", username),
            is_suspended=bool(data.get("is_suspended", False)),
        )
