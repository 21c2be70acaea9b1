"""
Supabase Share Store

Stores user shares in the ``user_shares`` table through Supabase's PostgREST
API:

    identifier       text primary key
    identifier_type  text            ("EMAIL" | "PHONE")
    user_share       text
    created_at       timestamptz default now()

Single-row reads ask for ``application/vnd.pgrst.object+json``; PostgREST
answers "no rows" with error code ``PGRST116``, which this store reports as
``None`` instead of raising.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from ..bases import ShareStore
from ...engine.exceptions import ConfigurationError, ShareStoreError
from ...schemas.bases import IdentifierKind
from ..evm.constants import DEFAULT_TIMEOUT

log = structlog.get_logger(__name__)

TABLE_NAME = "user_shares"

#: PostgREST code for "single row requested, zero rows returned".
NO_ROWS_CODE = "PGRST116"


class SupabaseShareStore(ShareStore):
    """Share store backed by a Supabase project."""

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str],
        *,
        table: str = TABLE_NAME,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not url or not api_key:
            raise ConfigurationError("Missing Supabase URL or key")
        self._endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }

    async def _select_one(self, identifier: str, columns: str) -> Optional[Dict[str, Any]]:
        response = await self._client.get(
            self._endpoint,
            params={"identifier": f"eq.{identifier}", "select": columns},
            headers={**self._headers, "Accept": "application/vnd.pgrst.object+json"},
        )
        if response.status_code >= 400:
            error = self._error_body(response)
            if error.get("code") == NO_ROWS_CODE:
                return None
            raise ShareStoreError(
                str(error.get("message") or f"Share store HTTP {response.status_code}"),
                code=error.get("code"),
                status=response.status_code,
            )
        return response.json()

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def put(self, identifier: str, kind: IdentifierKind, share: str) -> None:
        response = await self._client.post(
            self._endpoint,
            json=[{"identifier": identifier, "identifier_type": kind.value, "user_share": share}],
            headers={**self._headers, "Prefer": "return=minimal"},
        )
        if response.status_code >= 400:
            error = self._error_body(response)
            log.error("share_store_insert_failed", identifier=identifier, status=response.status_code, code=error.get("code"))
            raise ShareStoreError(
                str(error.get("message") or "Failed to store user share"),
                code=error.get("code"),
                status=response.status_code,
            )

    async def get(self, identifier: str) -> Optional[str]:
        row = await self._select_one(identifier, "user_share")
        return (row or {}).get("user_share") or None

    async def get_kind(self, identifier: str) -> Optional[IdentifierKind]:
        row = await self._select_one(identifier, "identifier_type")
        value = (row or {}).get("identifier_type")
        return IdentifierKind(value) if value else None

    async def exists(self, identifier: str) -> bool:
        row = await self._select_one(identifier, "identifier")
        return bool(row)

    async def aclose(self) -> None:
        await self._client.aclose()
