# -*- coding: utf-8 -*-
"""HTTP client for the sync relay.

The relay is an opaque blob store keyed by vault id (it keeps each blob at
``vaults/{vaultId}/journal.json``). It never sees plaintext.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from .errors import AuthorizationError, TransportError
from .models import validate_vault_id

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/sync"
HEALTH_PATH = "/health"
API_KEY_HEADER = "X-API-Key"
API_KEY_ENV = "VAULTJOURNAL_API_KEY"
DEFAULT_TIMEOUT = 30.0

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass
class RemoteBlob:
    """Relay answer: ciphertext (``None`` when nothing is stored) and server time."""

    data: Optional[str]
    timestamp: Optional[str] = None


def resolve_api_key(api_key: Optional[str]) -> Optional[str]:
    """Explicit credential first, then the environment."""
    return api_key or os.environ.get(API_KEY_ENV) or None


class BlobStoreClient:
    """Async client for fetch/put/delete of one blob per vault."""

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        parsed = urlparse(self._endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Invalid sync endpoint: {endpoint!r}")
        # the credential travels in a header, so refuse cleartext off-host
        if parsed.scheme != "https" and parsed.hostname not in _LOCAL_HOSTS:
            raise ValueError(
                f"Sync endpoint must use HTTPS (got {self._endpoint}). "
                "Use localhost for local development."
            )

        self.api_key = resolve_api_key(api_key)
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key

        self._client = httpx.AsyncClient(
            base_url=self._endpoint,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def __aenter__(self) -> "BlobStoreClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -----------------------------------------------------------------
    # Verbs
    # -----------------------------------------------------------------

    async def fetch_blob(self, vault_id: str) -> RemoteBlob:
        """GET the stored ciphertext; ``data`` is ``None`` for an empty vault."""
        validate_vault_id(vault_id)
        body = await self._request("GET", SYNC_PATH, params={"vaultId": vault_id})
        data = body.get("data")
        if data is not None and not isinstance(data, str):
            raise TransportError("Relay returned a non-string blob")
        logger.debug("Fetched vault %s (has_data=%s)", vault_id, data is not None)
        return RemoteBlob(data=data or None, timestamp=body.get("timestamp"))

    async def put_blob(self, vault_id: str, data: str) -> RemoteBlob:
        """POST *data* as the vault's blob, overwriting any previous one."""
        validate_vault_id(vault_id)
        body = await self._request("POST", SYNC_PATH, json={"vaultId": vault_id, "data": data})
        return RemoteBlob(data=None, timestamp=body.get("timestamp"))

    async def delete_blob(self, vault_id: str) -> None:
        validate_vault_id(vault_id)
        await self._request("DELETE", SYNC_PATH, params={"vaultId": vault_id})
        logger.info("Deleted remote blob for vault %s", vault_id)

    async def health(self) -> bool:
        """True when the relay answers its unauthenticated health check."""
        try:
            resp = await self._client.get(HEALTH_PATH)
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.debug("Health check failed: %s", exc)
            return False

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise AuthorizationError(_error_message(resp, "Unauthorized"), resp.status_code)
        if resp.is_error:
            raise TransportError(_error_message(resp, "Sync failed"), resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise TransportError("Relay returned invalid JSON", resp.status_code) from exc
        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("error") if isinstance(body, dict) else None
            raise TransportError(message or "Relay reported failure", resp.status_code)
        return body


def _error_message(resp: httpx.Response, fallback: str) -> str:
    """Prefer the relay's JSON ``error`` field, then raw text, then *fallback*."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    text = resp.text.strip()
    return text or f"{fallback}: HTTP {resp.status_code}"
