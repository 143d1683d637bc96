"""
Supabase Record Store Implementation

Talks to the hosted relational data service through its PostgREST
interface using httpx. Used when STORE_BACKEND=supabase.

Requirements:
    - SUPABASE_URL (https://<project>.supabase.co)
    - SUPABASE_ANON_KEY

Wire format:
    GET    /rest/v1/<table>?col=eq.<value>&order=<field>.desc&limit=<n>
    POST   /rest/v1/<table>                 (Prefer: return=representation)
    PATCH  /rest/v1/<table>?col=eq.<value>  (Prefer: return=representation)
    DELETE /rest/v1/<table>?col=eq.<value>

Timeouts are enforced by the httpx transport (STORE_TIMEOUT_SECONDS).
"""

import logging
from datetime import date, datetime
from typing import Any, Optional

import httpx

from plattr.core.config import get_settings
from plattr.core.exceptions import StoreError
from plattr.services.store.base import (
    BaseRecordStore,
    Filters,
    Record,
    SortKey,
)

logger = logging.getLogger(__name__)


def _filter_value(value: Any) -> str:
    """Render one equality filter in PostgREST syntax."""
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{'true' if value else 'false'}"
    return f"eq.{value}"


def _encode(values: Record) -> Record:
    """Make a record JSON-serializable."""
    encoded = {}
    for key, value in values.items():
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        encoded[key] = value
    return encoded


class SupabaseRecordStore(BaseRecordStore):
    """
    PostgREST-backed record store.

    Example:
        >>> store = SupabaseRecordStore()
        >>> users = await store.select("users", {"phone": "9876543210"}, limit=1)
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Raises:
            ValueError: If the URL or API key is not configured
        """
        settings = get_settings()

        url = url or settings.supabase_url
        api_key = api_key or settings.supabase_anon_key

        if not url or not api_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_ANON_KEY are required for the supabase "
                "store backend. Set them in your .env file or environment variables."
            )

        self._client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            timeout=timeout or settings.store_timeout_seconds,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

        logger.info(f"SupabaseRecordStore initialized ({url})")

    @property
    def provider_name(self) -> str:
        return "supabase"

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[Record] = None,
        prefer_representation: bool = False,
    ) -> Any:
        headers = {"Prefer": "return=representation"} if prefer_representation else None

        try:
            response = await self._client.request(
                method,
                f"/{table}",
                params=params,
                json=json,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200]
            logger.error(
                f"Supabase: {method} {table} failed - "
                f"{e.response.status_code}: {detail}"
            )
            raise StoreError(
                f"{method} {table} failed with status {e.response.status_code}",
                details={"status": e.response.status_code, "body": detail},
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Supabase: {method} {table} transport error - {e}")
            raise StoreError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _params(
        filters: Optional[Filters],
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> dict[str, str]:
        params = {key: _filter_value(value) for key, value in (filters or {}).items()}
        if order:
            params["order"] = SortKey.parse(order).to_param()
        if limit is not None:
            params["limit"] = str(limit)
        return params

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        params = self._params(filters, order, limit)
        params["select"] = "*"
        rows = await self._request("GET", table, params=params)
        return rows or []

    async def insert(self, table: str, values: Record) -> Record:
        rows = await self._request(
            "POST",
            table,
            json=_encode(values),
            prefer_representation=True,
        )
        if not rows:
            raise StoreError(f"Insert into {table} returned no representation")
        return rows[0] if isinstance(rows, list) else rows

    async def update(
        self,
        table: str,
        filters: Filters,
        values: Record,
    ) -> list[Record]:
        self._require_filters(table, filters)
        rows = await self._request(
            "PATCH",
            table,
            params=self._params(filters),
            json=_encode(values),
            prefer_representation=True,
        )
        return rows or []

    async def delete(self, table: str, filters: Filters) -> None:
        self._require_filters(table, filters)
        await self._request("DELETE", table, params=self._params(filters))

    async def health_check(self) -> bool:
        """Lightweight read against the users table."""
        try:
            await self.select("users", limit=1)
            return True
        except StoreError as e:
            logger.error(f"Supabase: Health check failed - {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
